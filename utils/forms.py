"""Base form for JSON request bodies."""
from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict


def _as_form_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class JSONForm(FlaskForm):
    """FlaskForm fed from a JSON object; bearer-token requests carry no CSRF token."""

    class Meta:
        csrf = False

    @classmethod
    def from_request(cls, **kwargs):
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        formdata = MultiDict({key: _as_form_value(value) for key, value in payload.items()})
        return cls(formdata=formdata, **kwargs)

    def error_payload(self, message: str = "Please correct the highlighted fields.") -> dict:
        errors = {field.name: list(field.errors) for field in self if field.errors}
        return {"message": message, "errors": errors}
