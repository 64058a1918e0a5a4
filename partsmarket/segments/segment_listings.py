from __future__ import annotations

from flask import Blueprint, jsonify

from partsmarket.schemas import CreateListingRequest, ListingStatusRequest, parse_body
from partsmarket.services import listing_service
from partsmarket.utils.auth import current_user_id, require_auth

listings_bp = Blueprint("listings_bp", __name__, url_prefix="/api/listings")


@listings_bp.post("")
@require_auth
def create_listing():
    payload = parse_body(CreateListingRequest)
    listing = listing_service.create_listing(current_user_id(), payload)
    return jsonify({"ok": True, "data": {"listingId": listing.id}}), 201


@listings_bp.patch("/<listing_id>/status")
@require_auth
def set_listing_status(listing_id: str):
    payload = parse_body(ListingStatusRequest)
    listing = listing_service.set_status(current_user_id(), listing_id, payload.status)
    return jsonify({"ok": True, "data": {"listingId": listing.id, "status": listing.status}})
