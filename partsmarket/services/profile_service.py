from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from partsmarket.config import get_settings
from partsmarket.extensions import db
from partsmarket.models import Demand, Listing, Profile
from partsmarket.models.demand import DEMAND_CLOSED, DEMAND_OPEN
from partsmarket.utils.clock import utcnow
from partsmarket.utils.db_errors import is_unique_violation
from partsmarket.utils.errors import ApiError, forbidden, issue
from partsmarket.utils.phone import InvalidPhoneNumber, normalize_whatsapp

logger = logging.getLogger(__name__)


def ensure_profile(user_id: str) -> Profile:
    """Returns the caller's profile, provisioning it on first use."""
    profile = db.session.get(Profile, user_id)
    if profile is not None:
        return profile
    profile = Profile(
        id=user_id,
        role="buyer",
        tokens=int(get_settings().profile_initial_tokens),
    )
    db.session.add(profile)
    try:
        db.session.commit()
        logger.info("profile_provisioned user_id=%s tokens=%s", user_id, profile.tokens)
        return profile
    except IntegrityError:
        # A concurrent request provisioned it first.
        db.session.rollback()
        existing = db.session.get(Profile, user_id)
        if existing is None:
            raise
        return existing


def get_status(user_id: str) -> dict:
    return ensure_profile(user_id).to_status_dict()


def require_not_blocked(profile: Profile) -> None:
    if profile.is_blocked:
        raise forbidden()


def parse_whatsapp(raw: str | None) -> str | None:
    try:
        return normalize_whatsapp(raw)
    except InvalidPhoneNumber:
        raise ApiError(
            400,
            "INVALID_WHATSAPP_NUMBER",
            issues=[issue("whatsapp", "invalid_whatsapp")],
        )


def _whatsapp_taken(whatsapp_e164: str, user_id: str) -> bool:
    return (
        db.session.query(Profile.id)
        .filter(Profile.whatsapp_e164 == whatsapp_e164, Profile.id != user_id)
        .first()
        is not None
    )


def deactivate_contactable_rows(user_id: str) -> tuple[int, int]:
    """Unreachable users must not stay visible as sellers or requesters."""
    listings = (
        Listing.query.filter(Listing.seller_profile_id == user_id, Listing.status == "active")
        .update({Listing.status: "inactive", Listing.updated_at: utcnow()}, synchronize_session=False)
    )
    demands = (
        Demand.query.filter(Demand.requester_user_id == user_id, Demand.status == DEMAND_OPEN)
        .update({Demand.status: DEMAND_CLOSED, Demand.updated_at: utcnow()}, synchronize_session=False)
    )
    return int(listings or 0), int(demands or 0)


def set_whatsapp(user_id: str, raw: str | None) -> Profile:
    normalized = parse_whatsapp(raw)
    profile = ensure_profile(user_id)

    if normalized and _whatsapp_taken(normalized, user_id):
        raise ApiError(409, "whatsapp_already_in_use")

    if normalized != profile.whatsapp_e164:
        profile.whatsapp_e164 = normalized
        profile.whatsapp_verified_at = None
        profile.whatsapp_verify_code_hash = None
        profile.whatsapp_verify_expires_at = None
        profile.whatsapp_verify_sent_at = None

    closed = (0, 0)
    if normalized is None:
        closed = deactivate_contactable_rows(user_id)

    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if is_unique_violation(e, constraint="whatsapp_e164"):
            raise ApiError(409, "whatsapp_already_in_use")
        raise

    if normalized is None:
        logger.info(
            "whatsapp_cleared user_id=%s listings_deactivated=%s demands_closed=%s",
            user_id,
            closed[0],
            closed[1],
        )
    else:
        logger.info("whatsapp_set user_id=%s status=%s", user_id, profile.whatsapp_status)
    db.session.refresh(profile)
    return profile
