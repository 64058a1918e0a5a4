from __future__ import annotations

from flask import Blueprint, jsonify

from partsmarket.schemas import DemandSearchQuery, SellSearchQuery, parse_args, parse_listing_search
from partsmarket.services import search_service
from partsmarket.utils.auth import current_user_id, require_auth

search_bp = Blueprint("search_bp", __name__, url_prefix="/api/search")


@search_bp.get("/listings")
@require_auth
def search_listings():
    query = parse_listing_search()
    if isinstance(query, SellSearchQuery):
        payload = search_service.search_sell(query)
    else:
        payload = search_service.search_buy(current_user_id(), query)
    return jsonify({"ok": True, **payload})


@search_bp.get("/demands")
@require_auth
def search_demands():
    query = parse_args(DemandSearchQuery)
    return jsonify({"ok": True, "data": search_service.search_demands(query)})
