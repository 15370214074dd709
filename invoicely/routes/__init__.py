from flask import request

from invoicely.errors import ValidationError


def json_object() -> dict:
    """The request's JSON body; an absent body is empty, anything but an object is rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
