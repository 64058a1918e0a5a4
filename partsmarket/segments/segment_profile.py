from __future__ import annotations

from flask import Blueprint, jsonify

from partsmarket.schemas import SetWhatsappRequest, VerifyCodeRequest, parse_body
from partsmarket.services import profile_service, verification_service
from partsmarket.utils.auth import current_user_id, require_auth

profile_bp = Blueprint("profile_bp", __name__, url_prefix="/api/profile")


@profile_bp.get("/status")
@require_auth
def profile_status():
    return jsonify({"ok": True, "data": profile_service.get_status(current_user_id())})


@profile_bp.post("/whatsapp")
@require_auth
def set_whatsapp():
    payload = parse_body(SetWhatsappRequest)
    profile = profile_service.set_whatsapp(current_user_id(), payload.whatsapp)
    return jsonify({"ok": True, "data": profile.to_status_dict()})


@profile_bp.post("/whatsapp/verify-code/generate")
@require_auth
def generate_verify_code():
    return jsonify({"ok": True, "data": verification_service.generate_code(current_user_id())})


@profile_bp.post("/whatsapp/verify-code/resend")
@require_auth
def resend_verify_code():
    return jsonify({"ok": True, "data": verification_service.generate_code(current_user_id())})


@profile_bp.post("/whatsapp/verify-code/confirm")
@require_auth
def confirm_verify_code():
    payload = parse_body(VerifyCodeRequest)
    return jsonify({"ok": True, "data": verification_service.confirm_code(current_user_id(), payload.code)})
