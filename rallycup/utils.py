"""Utility functions for the application."""

from flask import request

from .errors import ValidationError


def round1(value):
    """Round to one decimal place, the precision points are stored with."""
    return round(value * 10) / 10


def json_body():
    """Return the JSON object sent with the request, or an empty dict."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def validate_form(form):
    """Validate a submitted form, raising ValidationError with its field errors."""
    if not form.validate_on_submit():
        raise ValidationError("Invalid request.", {"fields": form.errors})
    return form
