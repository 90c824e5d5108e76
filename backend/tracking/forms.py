from django import forms

from .models import Delivery, FoodType

TARGET_CHOICES = [("", "---")] + list(Delivery.TargetType.choices)
FOOD_CHOICES = [("", "---")] + list(FoodType.choices)
STATUS_CHOICES = [("", "---")] + list(Delivery.Status.choices)


class DeliveryForm(forms.Form):
    target_type = forms.ChoiceField(choices=TARGET_CHOICES, required=False)
    target_name = forms.CharField(max_length=255)
    target_address = forms.CharField(required=False)
    portions_planned = forms.IntegerField(min_value=1)
    estimated_arrival = forms.DateTimeField(required=False)
    food_type = forms.ChoiceField(choices=FOOD_CHOICES, required=False)
    driver_name = forms.CharField(max_length=128, required=False)
    helper_names = forms.JSONField(required=False)
    notes = forms.CharField(required=False)

    def clean_target_type(self):
        return self.cleaned_data.get("target_type") or Delivery.TargetType.SCHOOL

    def clean_food_type(self):
        return self.cleaned_data.get("food_type") or FoodType.HOT

    def clean_helper_names(self):
        value = self.cleaned_data.get("helper_names")
        if value in (None, ""):
            return []
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise forms.ValidationError("helper_names must be a list of names.")
        return [v.strip() for v in value if v.strip()]


class _PositionForm(forms.Form):
    latitude = forms.FloatField(required=False, min_value=-90, max_value=90)
    longitude = forms.FloatField(required=False, min_value=-180, max_value=180)

    def clean(self):
        cleaned = super().clean()
        lat, lon = cleaned.get("latitude"), cleaned.get("longitude")
        if (lat is None) != (lon is None) and not self.errors:
            self.add_error("longitude" if lon is None else "latitude", "Send latitude and longitude together.")
        return cleaned


class DepartForm(_PositionForm):
    departure_time = forms.DateTimeField(required=False)
    departure_temp = forms.DecimalField(max_digits=5, decimal_places=2, required=False)


class ArriveForm(_PositionForm):
    arrival_time = forms.DateTimeField(required=False)
    arrival_temp = forms.DecimalField(max_digits=5, decimal_places=2, required=False)


class CompleteForm(forms.Form):
    portions_delivered = forms.IntegerField(min_value=0)
    serving_temp = forms.DecimalField(max_digits=5, decimal_places=2, required=False)
    recipient_name = forms.CharField(max_length=128, required=False)
    notes = forms.CharField(required=False)


class FailForm(forms.Form):
    reason = forms.CharField(max_length=255)


class LocationForm(forms.Form):
    latitude = forms.FloatField(min_value=-90, max_value=90)
    longitude = forms.FloatField(min_value=-180, max_value=180)
    accuracy = forms.FloatField(min_value=0, required=False)
    status = forms.ChoiceField(choices=STATUS_CHOICES, required=False)
    notes = forms.CharField(max_length=255, required=False)
    recorded_at = forms.DateTimeField(required=False)
