# api/helpers.py
from flask import request

from core.errors import ValidationError


def json_body() -> dict:
    """Request JSON object, 400 when the body is missing or not an object"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data
