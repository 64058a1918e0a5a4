from __future__ import annotations

from functools import wraps

from flask import g, request

from partsmarket.utils.errors import unauthorized
from partsmarket.utils.jwt_utils import decode_token, get_bearer_token
from partsmarket.utils.observability import tag_request_user


def resolve_auth_context() -> tuple[str | None, str | None]:
    token = get_bearer_token(request.headers.get("Authorization", ""))
    if not token:
        return None, None
    payload = decode_token(token)
    if not payload:
        return None, None
    sub = str(payload.get("sub") or "").strip()
    if not sub:
        return None, None
    return sub, token


def require_auth(fn):
    """
    Resolves the bearer credential to (user id, forwarding token) on `g`.
    """

    @wraps(fn)
    def wrapped(*args, **kwargs):
        user_id, token = resolve_auth_context()
        if not user_id:
            raise unauthorized()
        g.auth_user_id = user_id
        g.auth_token = token
        tag_request_user(user_id)
        return fn(*args, **kwargs)

    return wrapped


def current_user_id() -> str:
    user_id = getattr(g, "auth_user_id", None)
    if not user_id:
        raise unauthorized()
    return str(user_id)
