from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from partsmarket.config import get_settings
from partsmarket.extensions import db
from partsmarket.integrations.common import IntegrationDisabledError, IntegrationMisconfiguredError
from partsmarket.integrations.messaging import get_messaging_provider
from partsmarket.models import Profile
from partsmarket.services.profile_service import ensure_profile
from partsmarket.utils.clock import isoformat, utcnow
from partsmarket.utils.errors import ApiError
from partsmarket.utils.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)

CODE_DIGITS = 6
CONFIRM_WINDOW_SECONDS = 600


def _new_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def _require_pending_number(profile: Profile) -> None:
    if not profile.whatsapp_e164:
        raise ApiError(400, "add_whatsapp_first")
    if profile.whatsapp_verified_at is not None:
        raise ApiError(400, "already_verified")


def _deliver(profile: Profile, code: str, ttl_seconds: int) -> str:
    settings = get_settings()
    try:
        provider = get_messaging_provider(current_app, settings)
    except IntegrationDisabledError:
        return "skipped"
    except IntegrationMisconfiguredError as e:
        logger.error("verify_code_delivery_misconfigured user_id=%s err=%s", profile.id, e)
        return "failed"

    minutes = max(1, ttl_seconds // 60)
    message = f"Tu codigo de verificacion es {code}. Vence en {minutes} minutos."
    result = provider.send_whatsapp(to=profile.whatsapp_e164, message=message, reference=f"verify:{profile.id}")
    if not result.ok:
        logger.warning(
            "verify_code_delivery_failed user_id=%s provider=%s code=%s",
            profile.id,
            provider.name,
            result.code,
        )
        return "failed"
    return "sent"


def generate_code(user_id: str, *, now=None) -> dict:
    """
    Issues a fresh code for the number on file. Used for both generate and
    resend: the cooldown and the hourly cap apply to either.
    """
    settings = get_settings()
    profile = ensure_profile(user_id)
    _require_pending_number(profile)

    now = now or utcnow()
    sent_at = profile.whatsapp_verify_sent_at
    if sent_at is not None:
        elapsed = (now - sent_at).total_seconds()
        if elapsed < settings.verify_code_cooldown_seconds:
            raise ApiError(
                400,
                "cooldown_active",
                retry_after=int(settings.verify_code_cooldown_seconds - elapsed) + 1,
            )

    decision = get_rate_limiter().consume(
        f"verify:generate:u:{user_id}",
        limit=settings.verify_code_max_per_hour,
        window_seconds=3600,
    )
    if not decision.allowed:
        raise ApiError(429, "rate_limited", retry_after=decision.retry_after_seconds)

    code = _new_code()
    expires_at = now + timedelta(seconds=settings.verify_code_ttl_seconds)
    profile.whatsapp_verify_code_hash = generate_password_hash(code)
    profile.whatsapp_verify_expires_at = expires_at
    profile.whatsapp_verify_sent_at = now
    db.session.commit()

    delivery = _deliver(profile, code, settings.verify_code_ttl_seconds)
    logger.info("verify_code_generated user_id=%s delivery=%s", user_id, delivery)

    data = {"expiresAt": isoformat(expires_at), "delivery": delivery}
    if settings.expose_verify_code and not settings.production:
        data["code"] = code
    return data


def confirm_code(user_id: str, code: str, *, now=None) -> dict:
    settings = get_settings()
    profile = ensure_profile(user_id)
    _require_pending_number(profile)

    decision = get_rate_limiter().consume(
        f"verify:confirm:u:{user_id}",
        limit=settings.verify_confirm_max_attempts,
        window_seconds=CONFIRM_WINDOW_SECONDS,
    )
    if not decision.allowed:
        raise ApiError(429, "rate_limited", retry_after=decision.retry_after_seconds)

    if not profile.whatsapp_verify_code_hash:
        raise ApiError(400, "invalid_code")
    now = now or utcnow()
    expires_at = profile.whatsapp_verify_expires_at
    if expires_at is None or now >= expires_at:
        raise ApiError(400, "code_expired")
    if not check_password_hash(profile.whatsapp_verify_code_hash, (code or "").strip()):
        logger.info("verify_code_mismatch user_id=%s", user_id)
        raise ApiError(400, "invalid_code")

    profile.whatsapp_verified_at = now
    profile.whatsapp_verify_code_hash = None
    profile.whatsapp_verify_expires_at = None
    profile.whatsapp_verify_sent_at = None
    db.session.commit()
    logger.info("verify_code_confirmed user_id=%s", user_id)

    status = profile.to_status_dict()
    return {
        "verifiedAt": isoformat(profile.whatsapp_verified_at),
        "whatsappStatus": status["whatsappStatus"],
        "whatsappVerified": status["whatsappVerified"],
        "profileComplete": status["profileComplete"],
    }
