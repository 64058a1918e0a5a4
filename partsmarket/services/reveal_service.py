from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from partsmarket.config import get_settings
from partsmarket.extensions import db
from partsmarket.models import ContactAccess, Demand, Listing, Profile
from partsmarket.services.profile_service import ensure_profile, require_not_blocked
from partsmarket.utils.db_errors import is_unique_violation
from partsmarket.utils.errors import ApiError, unexpected_error
from partsmarket.utils.phone import whatsapp_url
from partsmarket.utils.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevealTarget:
    kind: str  # "listing" | "demand"
    target_id: str

    @classmethod
    def from_request(cls, payload) -> "RevealTarget":
        if payload.listing_id is not None:
            return cls("listing", str(payload.listing_id))
        return cls("demand", str(payload.demand_id))

    @property
    def response_key(self) -> str:
        return "listingId" if self.kind == "listing" else "demandId"


@dataclass(eq=False)
class RevealError(Exception):
    code: str
    detail: str = ""

    def __str__(self) -> str:
        return self.code


@dataclass
class RevealResult:
    whatsapp_e164: str | None
    did_consume: bool


def _load_target(target: RevealTarget):
    model = Listing if target.kind == "listing" else Demand
    return db.session.get(model, target.target_id)


def _owner_id(row) -> str:
    if isinstance(row, Listing):
        return row.seller_profile_id
    return row.requester_user_id


def _is_live(row) -> bool:
    if isinstance(row, Listing):
        return row.is_active
    return row.is_open


def _access_filter(requester_id: str, target: RevealTarget):
    column = ContactAccess.listing_id if target.kind == "listing" else ContactAccess.demand_id
    return ContactAccess.query.filter(ContactAccess.requester_user_id == requester_id, column == target.target_id)


def reveal_and_charge(requester_id: str, target: RevealTarget, *, cost: int = 1) -> RevealResult:
    """
    Debits `cost` tokens and records the access in one transaction, or returns
    the contact for free when this requester already revealed this target.

    The debit is a compare-and-swap on the balance, and the unique access row
    is the arbiter between concurrent reveals of the same target: the loser
    rolls back its debit and answers as a repeat.
    """
    row = _load_target(target)
    if row is None or not _is_live(row):
        raise RevealError("target_not_active")

    counterparty = db.session.get(Profile, _owner_id(row))
    contact = counterparty.whatsapp_e164 if counterparty is not None else None
    if not whatsapp_url(contact):
        raise RevealError("no_contact")

    if _access_filter(requester_id, target).first() is not None:
        return RevealResult(contact, False)

    debited = db.session.execute(
        update(Profile)
        .where(Profile.id == requester_id, Profile.tokens >= int(cost))
        .values(tokens=Profile.tokens - int(cost))
        .execution_options(synchronize_session=False)
    )
    if int(debited.rowcount or 0) != 1:
        db.session.rollback()
        raise RevealError("insufficient_tokens")

    access = ContactAccess(requester_user_id=requester_id, token_cost=int(cost))
    if target.kind == "listing":
        access.listing_id = target.target_id
    else:
        access.demand_id = target.target_id
    db.session.add(access)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if not is_unique_violation(e, table="contact_accesses"):
            raise
        logger.info("reveal_race_lost requester=%s %s=%s", requester_id, target.kind, target.target_id)
        return RevealResult(contact, False)
    return RevealResult(contact, True)


def _check_reveal_rate(requester_id: str) -> None:
    settings = get_settings()
    limiter = get_rate_limiter()
    subject = f"u:{requester_id}"

    if settings.reveal_min_interval_ms > 0:
        decision = limiter.consume(
            f"reveal:interval:{subject}",
            limit=1,
            window_seconds=settings.reveal_min_interval_ms / 1000.0,
        )
        if not decision.allowed:
            raise ApiError(429, "RATE_LIMIT_EXCEEDED", retry_after=decision.retry_after_seconds)

    decision = limiter.consume(
        f"reveal:window:{subject}",
        limit=settings.reveal_max_per_window,
        window_seconds=settings.reveal_window_seconds,
    )
    if not decision.allowed:
        raise ApiError(429, "RATE_LIMIT_EXCEEDED", retry_after=decision.retry_after_seconds)


_SELF_REVEAL_CODES = {"listing": "CANNOT_REVEAL_OWN_LISTING", "demand": "OWN_DEMAND_REVEAL_BLOCKED"}
_NOT_ACTIVE_CODES = {"listing": "listing_not_active", "demand": "demand_not_active"}
_NO_CONTACT_CODES = {"listing": "listing_has_no_contact", "demand": "demand_has_no_contact"}


def _business_error(target: RevealTarget, err: RevealError) -> ApiError:
    if err.code == "insufficient_tokens":
        return ApiError(402, "insufficient_tokens")
    if err.code == "target_not_active":
        return ApiError(400, _NOT_ACTIVE_CODES[target.kind])
    if err.code == "no_contact":
        return ApiError(400, _NO_CONTACT_CODES[target.kind])
    logger.error("reveal_unknown_business_error code=%s kind=%s", err.code, target.kind)
    return unexpected_error()


def reveal(requester_id: str, target: RevealTarget) -> dict:
    profile = ensure_profile(requester_id)
    require_not_blocked(profile)
    if not profile.profile_complete:
        raise ApiError(403, "WHATSAPP_REQUIRED")

    _check_reveal_rate(requester_id)

    row = _load_target(target)
    if row is not None and _owner_id(row) == requester_id:
        logger.warning("reveal_self_blocked requester=%s %s=%s", requester_id, target.kind, target.target_id)
        raise ApiError(403, _SELF_REVEAL_CODES[target.kind])
    if row is None or not _is_live(row):
        raise ApiError(400, _NOT_ACTIVE_CODES[target.kind])

    try:
        result = reveal_and_charge(requester_id, target, cost=get_settings().reveal_token_cost)
    except RevealError as e:
        db.session.rollback()
        api_error = _business_error(target, e)
        logger.warning("reveal_failed requester=%s %s=%s code=%s", requester_id, target.kind, target.target_id, api_error.code)
        raise api_error

    url = whatsapp_url(result.whatsapp_e164)
    if not url:
        raise ApiError(400, _NO_CONTACT_CODES[target.kind])

    logger.info(
        "reveal_ok requester=%s %s=%s did_consume=%s",
        requester_id,
        target.kind,
        target.target_id,
        result.did_consume,
    )
    return {target.response_key: target.target_id, "whatsappUrl": url, "didConsume": result.did_consume}
