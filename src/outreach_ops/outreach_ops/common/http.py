from __future__ import annotations

from functools import wraps
from typing import Any, Optional

from flask import g, jsonify, request

from ..core.actor import Actor
from ..core.exceptions import AuthenticationError, ValidationError
from .serialization import to_json


def current_actor() -> Actor:
    actor: Optional[Actor] = getattr(g, "actor", None)
    if actor is None:
        raise AuthenticationError("Not authenticated")
    return actor


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        current_actor()
        return view(*args, **kwargs)

    return wrapper


def json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", {"body": "must be a JSON object"})
    return data


def respond(value: Any, status: int = 200, **kwargs):
    return jsonify(to_json(value, **kwargs)), status


def query_arg(name: str) -> Optional[str]:
    v = request.args.get(name)
    return v if v not in (None, "") else None
