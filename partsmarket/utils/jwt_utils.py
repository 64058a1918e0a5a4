import logging
import time
from typing import Optional, Dict, Any, Tuple

import jwt

from partsmarket.config import get_settings

logger = logging.getLogger(__name__)


def _secret() -> str:
    return get_settings().auth_jwt_secret


def create_token(user_id: str, ttl_seconds: int = 60 * 60 * 24 * 7) -> str:
    """Development/test helper; production tokens come from the auth provider."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + ttl_seconds,
        "role": "authenticated",
    }
    audience = get_settings().auth_jwt_audience
    if audience:
        payload["aud"] = audience
    return jwt.encode(payload, _secret(), algorithm="HS256")


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    audience = get_settings().auth_jwt_audience
    try:
        if audience:
            return jwt.decode(token, _secret(), algorithms=["HS256"], audience=audience)
        return jwt.decode(token, _secret(), algorithms=["HS256"], options={"verify_aud": False})
    except jwt.PyJWTError as e:
        logger.info("auth_token_rejected reason=%s", type(e).__name__)
        return None


def parse_auth_header(auth_header: str) -> Tuple[Optional[str], Optional[str]]:
    if not auth_header:
        return None, None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1], "bearer"
    return None, None


def get_bearer_token(auth_header: str) -> Optional[str]:
    token, _scheme = parse_auth_header(auth_header)
    return token
