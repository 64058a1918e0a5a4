from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from partsmarket.extensions import db
from partsmarket.models import Listing, ListingLocation, ListingPricing, Profile
from partsmarket.services.catalog_service import ItemSignature, validate_signature
from partsmarket.services.profile_service import ensure_profile, require_not_blocked
from partsmarket.utils.clock import utcnow
from partsmarket.utils.db_errors import is_unique_violation
from partsmarket.utils.errors import ApiError, invalid_request, not_found

logger = logging.getLogger(__name__)


def require_publishable(profile: Profile) -> None:
    """Publishing needs a reachable seller: a verified WhatsApp number."""
    require_not_blocked(profile)
    status = profile.whatsapp_status
    if status == "missing":
        raise ApiError(400, "add_whatsapp_first")
    if status != "verified":
        raise ApiError(403, "WHATSAPP_REQUIRED")


def _find_active_duplicate(seller_id: str, signature: ItemSignature, *, exclude_id: str | None = None):
    q = Listing.query.filter(
        Listing.seller_profile_id == seller_id,
        Listing.status == "active",
        *signature.filter(Listing),
    )
    if exclude_id:
        q = q.filter(Listing.id != exclude_id)
    return q.first()


def _duplicate_error(existing_id: str | None = None) -> ApiError:
    err = ApiError(409, "duplicate_listing")
    if existing_id:
        err.issues = [{"path": "listingId", "message": existing_id, "code": "existing_listing"}]
    return err


def _commit_listing_write(seller_id: str) -> None:
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if is_unique_violation(e, constraint="uq_listings_active_seller_signature", table="listings"):
            logger.warning("listing_duplicate_race seller=%s", seller_id)
            raise _duplicate_error()
        raise


def create_listing(seller_id: str, payload) -> Listing:
    profile = ensure_profile(seller_id)
    require_publishable(profile)

    signature = ItemSignature.from_fields(payload)
    issues = validate_signature(signature)
    if issues:
        raise invalid_request(issues)

    existing = _find_active_duplicate(seller_id, signature)
    if existing is not None:
        logger.info("listing_duplicate seller=%s existing=%s", seller_id, existing.id)
        raise _duplicate_error(existing.id)

    now = utcnow()
    listing = Listing(
        seller_profile_id=seller_id,
        status="active",
        created_at=now,
        updated_at=now,
        **signature.columns(),
    )
    listing.pricing = ListingPricing(
        price_amount=payload.price.amount,
        price_type=payload.price.type,
        currency=payload.price.currency,
    )
    if payload.location is not None:
        listing.location = ListingLocation(
            department=payload.location.department,
            municipality=payload.location.municipality,
        )
    db.session.add(listing)

    upgraded = False
    if (profile.role or "buyer") != "seller":
        profile.role = "seller"
        upgraded = True

    _commit_listing_write(seller_id)
    logger.info(
        "listing_created listing_id=%s seller=%s role_upgraded=%s",
        listing.id,
        seller_id,
        upgraded,
    )
    return listing


def set_status(seller_id: str, listing_id: str, next_status: str) -> Listing:
    # Unknown and foreign listings answer the same 404.
    listing = Listing.query.filter(Listing.id == listing_id, Listing.seller_profile_id == seller_id).first()
    if listing is None:
        raise not_found()

    if listing.status == next_status:
        return listing

    if next_status == "active":
        require_publishable(ensure_profile(seller_id))
        signature = ItemSignature(
            brand_id=listing.brand_id,
            model_id=listing.model_id,
            year_id=listing.year_id,
            item_type_id=listing.item_type_id,
            part_id=listing.part_id,
        )
        existing = _find_active_duplicate(seller_id, signature, exclude_id=listing.id)
        if existing is not None:
            raise _duplicate_error(existing.id)

    listing.status = next_status
    listing.updated_at = utcnow()
    _commit_listing_write(seller_id)
    logger.info("listing_status listing_id=%s seller=%s status=%s", listing.id, seller_id, next_status)
    return listing


def list_own_listings(seller_id: str) -> list[dict]:
    rows = (
        Listing.query.filter(Listing.seller_profile_id == seller_id)
        .order_by(Listing.created_at.desc())
        .all()
    )
    return [row.to_owner_dict() for row in rows]
