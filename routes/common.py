import json

from flask import jsonify, request


def deny_response(decision):
    return jsonify({'error': decision.reason}), decision.status_code


def error_response(message, status=400):
    return jsonify({'error': message}), status


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_optional_int(value, name, minimum=None):
    value = (value or '').strip() if isinstance(value, str) else value
    if value is None or value == '':
        return None
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f'{name} must be a whole number')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be a whole number')
    if minimum is not None and number < minimum:
        raise ValueError(f'{name} must be at least {minimum}')
    return number


def parse_optional_float(value, name, minimum=None, maximum=None):
    value = (value or '').strip() if isinstance(value, str) else value
    if value is None or value == '':
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be a number')
    if (minimum is not None and number < minimum) or (maximum is not None and number > maximum):
        raise ValueError(f'{name} must be between {minimum} and {maximum}')
    return number


def parse_room_list(raw, name, max_rooms):
    """Room numbers arrive as a JSON array or a comma separated list; blanks are dropped."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return []
    if isinstance(raw, str):
        try:
            values = json.loads(raw)
        except ValueError:
            values = raw.split(',')
    else:
        values = raw
    if isinstance(values, int) and not isinstance(values, bool):
        values = [values]
    if not isinstance(values, list):
        raise ValueError(f'{name} must be a list of room numbers')
    rooms = []
    for value in values:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        if isinstance(value, bool):
            raise ValueError(f'{name} must contain room numbers')
        room = parse_optional_int(value, name, minimum=1)
        if room is not None:
            rooms.append(room)
    if len(rooms) > max_rooms:
        raise ValueError(f'{name} cannot list more than {max_rooms} rooms')
    return rooms
