"""
Forms validating JSON request bodies for counters and counter links.

The forms are bound to decoded JSON rather than POST data. With
``partial=True`` only the keys present in the body are validated and
returned, which is what PATCH-style updates need; ``submitted()`` returns
those cleaned values ready to pass to a handler.
"""

from django import forms

from rowkeeper.core.models.counter import Counter, CounterLinkType, CounterType

# Keys that, when present, may not be null
NON_NULLABLE_COUNTER_FIELDS = (
    "name",
    "type",
    "current_value",
    "increment_by",
    "sort_order",
    "is_visible",
    "is_active",
    "display_color",
    "auto_reset",
)


class JSONBodyForm(forms.Form):
    def __init__(self, data=None, *args, partial=False, **kwargs):
        super().__init__(data, *args, **kwargs)
        self.partial = partial
        if partial and data is not None:
            for name in list(self.fields):
                if name not in data:
                    del self.fields[name]

    def submitted(self) -> dict:
        """Cleaned values for the keys that were actually sent."""
        return {
            name: value
            for name, value in self.cleaned_data.items()
            if name in self.data
        }


class CounterForm(JSONBodyForm):
    name = forms.CharField(max_length=255)
    type = forms.ChoiceField(choices=CounterType.choices, required=False)
    current_value = forms.IntegerField(required=False)
    target_value = forms.IntegerField(required=False)
    increment_by = forms.IntegerField(required=False)
    min_value = forms.IntegerField(required=False)
    max_value = forms.IntegerField(required=False)
    increment_pattern = forms.JSONField(required=False)
    sort_order = forms.IntegerField(required=False)
    is_visible = forms.BooleanField(required=False)
    is_active = forms.BooleanField(required=False)
    display_color = forms.RegexField(
        regex=r"^#[0-9A-Fa-f]{6}$",
        required=False,
        error_messages={"invalid": "Enter a hex colour such as #3B82F6."},
    )
    notes = forms.CharField(required=False)
    parent_counter = forms.ModelChoiceField(
        queryset=Counter.objects.none(), required=False
    )
    auto_reset = forms.BooleanField(required=False)

    def __init__(self, data=None, *args, project=None, **kwargs):
        super().__init__(data, *args, **kwargs)
        if "parent_counter" in self.fields and project is not None:
            self.fields["parent_counter"].queryset = Counter.objects.for_project(
                project
            )

    def clean_increment_pattern(self):
        pattern = self.cleaned_data.get("increment_pattern")
        if pattern is not None and not isinstance(pattern, dict):
            raise forms.ValidationError("Increment pattern must be a JSON object.")
        return pattern

    def clean(self):
        cleaned_data = super().clean()

        for name in NON_NULLABLE_COUNTER_FIELDS:
            if name not in self.data or name in self.errors:
                continue
            if self.data[name] in (None, ""):
                self.add_error(name, "This field may not be null.")

        if "name" in cleaned_data:
            cleaned_data["name"] = cleaned_data["name"].strip()

        return cleaned_data


class CounterLinkForm(JSONBodyForm):
    source_counter_id = forms.UUIDField()
    target_counter_id = forms.UUIDField()
    link_type = forms.ChoiceField(choices=CounterLinkType.choices, required=False)
    trigger_condition = forms.JSONField()
    action = forms.JSONField()
    is_active = forms.BooleanField(required=False)

    def _clean_json_object(self, name):
        value = self.cleaned_data.get(name)
        if not isinstance(value, dict):
            raise forms.ValidationError("Must be a JSON object.")
        return value

    def clean_trigger_condition(self):
        return self._clean_json_object("trigger_condition")

    def clean_action(self):
        return self._clean_json_object("action")

    def clean(self):
        cleaned_data = super().clean()
        source = cleaned_data.get("source_counter_id")
        target = cleaned_data.get("target_counter_id")
        if source is not None and source == target:
            raise forms.ValidationError(
                "Source and target counters cannot be the same."
            )
        return cleaned_data


class CounterLinkUpdateForm(CounterLinkForm):
    def __init__(self, data=None, *args, **kwargs):
        super().__init__(data, *args, partial=True, **kwargs)
        self.fields.pop("source_counter_id", None)
        self.fields.pop("target_counter_id", None)
