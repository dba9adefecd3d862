"""Request helpers shared by the blueprints."""
from functools import wraps

from flask import request

from services.errors import AuthRequired, ValidationError
from services.kiosk import current_kiosk
from services.security import GateDecision


def json_body(expected=dict):
    """Parsed JSON body of the expected type, else ``bad_json``."""
    data = request.get_json(silent=True)
    if not isinstance(data, expected):
        raise ValidationError('bad_json')
    return data


def admin_required(view):
    """Pass through while no admin credential exists; afterwards demand Basic auth."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if current_kiosk().check_admin(request.authorization) is not GateDecision.ALLOWED:
            raise AuthRequired()
        return view(*args, **kwargs)
    return wrapped
