from __future__ import annotations

from flask import Blueprint, g, jsonify

from partsmarket.services import demand_service, listing_service, profile_service
from partsmarket.utils.auth import current_user_id, require_auth

me_bp = Blueprint("me_bp", __name__, url_prefix="/api/me")


@me_bp.get("")
@require_auth
def me():
    user_id = current_user_id()
    profile = profile_service.ensure_profile(user_id)
    return jsonify({"ok": True, "data": {"userId": user_id, "tokenPresent": bool(g.auth_token), **profile.to_status_dict()}})


@me_bp.get("/listings")
@require_auth
def my_listings():
    return jsonify({"ok": True, "data": {"results": listing_service.list_own_listings(current_user_id())}})


@me_bp.get("/buy-demands")
@require_auth
def my_demands():
    return jsonify({"ok": True, "data": {"results": demand_service.list_own_demands(current_user_id())}})


@me_bp.delete("/buy-demands/<demand_id>")
@require_auth
def delete_my_demand(demand_id: str):
    demand_service.delete_own_demand(current_user_id(), demand_id)
    return jsonify({"ok": True, "data": {"demandId": demand_id, "deleted": True}})
