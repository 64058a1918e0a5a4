from __future__ import annotations

from flask import Blueprint, jsonify

from partsmarket.schemas import ContactAccessRequest, parse_body
from partsmarket.services.reveal_service import RevealTarget, reveal
from partsmarket.utils.auth import current_user_id, require_auth

contact_access_bp = Blueprint("contact_access_bp", __name__, url_prefix="/api")


@contact_access_bp.post("/contact-access")
@require_auth
def contact_access():
    payload = parse_body(ContactAccessRequest)
    data = reveal(current_user_id(), RevealTarget.from_request(payload))
    return jsonify({"ok": True, "data": data})
