from django import forms

from .models import Issue


class IssueForm(forms.Form):
    issue_type = forms.ChoiceField(choices=Issue.IssueType.choices)
    severity = forms.ChoiceField(choices=Issue.Severity.choices)
    description = forms.CharField()
    location = forms.CharField(max_length=255, required=False)
    affected_deliveries = forms.JSONField(required=False)

    def clean_affected_deliveries(self):
        value = self.cleaned_data.get("affected_deliveries")
        if value in (None, ""):
            return []
        if not isinstance(value, list) or not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
            raise forms.ValidationError("affected_deliveries must be a list of delivery ids.")
        return value


class ResolveForm(forms.Form):
    notes = forms.CharField(required=False)


class IssueFilterForm(forms.Form):
    issue_type = forms.ChoiceField(choices=[("", "---")] + list(Issue.IssueType.choices), required=False)
    severity = forms.ChoiceField(choices=[("", "---")] + list(Issue.Severity.choices), required=False)
    resolved = forms.NullBooleanField(required=False)
