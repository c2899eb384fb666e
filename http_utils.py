from flask import request

from errors import ValidationError


def get_payload():
    """Form fields for multipart uploads, JSON body otherwise."""
    if request.form:
        return request.form.to_dict()
    return request.get_json(silent=True) or {}


def parse_bool(value):
    """'true'/'false' strings from forms, real bools from JSON, None if absent."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def int_arg(name, default, minimum=1, maximum=None):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        value = None
    if value is None or value < minimum or (maximum is not None and value > maximum):
        bounds = f'between {minimum} and {maximum}' if maximum else f'at least {minimum}'
        raise ValidationError.single(name, f'{name.capitalize()} must be an integer {bounds}')
    return value
