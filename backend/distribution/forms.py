from django import forms

from .models import Schedule

WAVE_CHOICES = [("", "---")] + list(Schedule.Wave.choices)
STATUS_CHOICES = [("", "---")] + list(Schedule.Status.choices)


def _names(value, field_name):
    if value in (None, ""):
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise forms.ValidationError(f"{field_name} must be a list of names.")
    return [v.strip() for v in value if v.strip()]


class ScheduleForm(forms.Form):
    production_batch = forms.CharField(max_length=64)
    distribution_date = forms.DateField()
    wave = forms.ChoiceField(choices=WAVE_CHOICES, required=False)
    estimated_beneficiaries = forms.IntegerField(min_value=0, required=False)
    total_portions = forms.IntegerField(min_value=0, required=False)
    packaging_type = forms.CharField(max_length=32, required=False)
    packaging_cost = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    fuel_cost = forms.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    notes = forms.CharField(required=False)

    def clean_wave(self):
        return self.cleaned_data.get("wave") or Schedule.Wave.MORNING


class ScheduleUpdateForm(ScheduleForm):
    production_batch = forms.CharField(max_length=64, required=False)
    distribution_date = forms.DateField(required=False)

    def clean_wave(self):
        return self.cleaned_data.get("wave")

    def clean(self):
        cleaned = super().clean()
        if "distribution_date" in self.data and not cleaned.get("distribution_date"):
            self.add_error("distribution_date", "Cannot be empty.")
        if "wave" in self.data and not cleaned.get("wave"):
            self.add_error("wave", "Cannot be empty.")
        return cleaned


class ScheduleFilterForm(forms.Form):
    status = forms.ChoiceField(choices=STATUS_CHOICES, required=False)
    wave = forms.ChoiceField(choices=WAVE_CHOICES, required=False)
    start = forms.DateField(required=False)
    end = forms.DateField(required=False)


class StatisticsQueryForm(forms.Form):
    start = forms.DateField(required=False)
    end = forms.DateField(required=False)

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get("start"), cleaned.get("end")
        if start and end and end < start:
            self.add_error("end", "End date is before start date.")
        return cleaned


class AssignVehicleForm(forms.Form):
    vehicle_id = forms.IntegerField(min_value=1)
    driver_id = forms.IntegerField(min_value=1)
    helpers = forms.JSONField(required=False)
    start_time = forms.DateTimeField(required=False)
    end_time = forms.DateTimeField(required=False)
    start_location = forms.CharField(max_length=255, required=False)
    end_location = forms.CharField(max_length=255, required=False)
    notes = forms.CharField(required=False)

    def clean_helpers(self):
        return _names(self.cleaned_data.get("helpers"), "helpers")


class TransitionForm(forms.Form):
    # free text: unknown targets are answered with the allowed set
    status = forms.CharField(max_length=32)
    reason = forms.CharField(max_length=255, required=False)
