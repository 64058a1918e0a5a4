from __future__ import annotations

from dataclasses import dataclass, field

from flask import jsonify

from partsmarket.utils.observability import get_request_id, note_error_code


# The code is the client contract; messages are for display only.
ERROR_MESSAGES: dict[str, str] = {
    "invalid_request": "Invalid request. Review the form fields.",
    "unauthorized": "Session expired. Please sign in again.",
    "forbidden": "You do not have permission for this action.",
    "not_found": "Resource not found.",
    "WHATSAPP_REQUIRED": "Register and verify your WhatsApp number to continue.",
    "INVALID_WHATSAPP_NUMBER": "Invalid WhatsApp number. Use the format +503XXXXXXXX.",
    "whatsapp_already_in_use": "That WhatsApp number is already in use.",
    "add_whatsapp_first": "Add your WhatsApp number first.",
    "already_verified": "Your WhatsApp number is already verified.",
    "cooldown_active": "Please wait before requesting another code.",
    "rate_limited": "Too many attempts. Please retry later.",
    "invalid_code": "The verification code is not valid.",
    "code_expired": "The verification code has expired.",
    "insufficient_tokens": "Not enough tokens.",
    "RATE_LIMIT_EXCEEDED": "Too many reveal attempts. Please wait a moment.",
    "listing_not_active": "Listing no longer available.",
    "demand_not_active": "Demand no longer available.",
    "CANNOT_REVEAL_OWN_LISTING": "This is your own listing.",
    "OWN_DEMAND_REVEAL_BLOCKED": "This is your own demand.",
    "listing_has_no_contact": "Listing has no contact available.",
    "demand_has_no_contact": "Demand has no contact available.",
    "duplicate_listing": "You already have an active listing for this same part.",
    "unexpected_error": "Unexpected error. Please try again.",
}


def message_for(code: str) -> str:
    return ERROR_MESSAGES.get(code) or ERROR_MESSAGES["unexpected_error"]


def issue(path: str, message: str, code: str = "custom") -> dict:
    return {"path": path, "message": message, "code": code}


@dataclass(eq=False)
class ApiError(Exception):
    status: int
    code: str
    message: str = ""
    issues: list[dict] = field(default_factory=list)
    retry_after: int | None = None

    def to_payload(self) -> dict:
        payload = {
            "ok": False,
            "error": self.code,
            "message": self.message or message_for(self.code),
        }
        if self.issues:
            payload["issues"] = list(self.issues)
        if self.retry_after is not None:
            payload["retry_after"] = int(self.retry_after)
        rid = get_request_id()
        if rid:
            payload["trace_id"] = rid
        return payload

    def to_response(self):
        note_error_code(self.code)
        resp = jsonify(self.to_payload())
        resp.status_code = int(self.status)
        if self.retry_after is not None:
            resp.headers["Retry-After"] = str(max(1, int(self.retry_after)))
        return resp


def invalid_request(issues: list[dict] | None = None) -> ApiError:
    return ApiError(400, "invalid_request", issues=list(issues or []))


def unauthorized() -> ApiError:
    return ApiError(401, "unauthorized")


def forbidden() -> ApiError:
    return ApiError(403, "forbidden")


def not_found() -> ApiError:
    return ApiError(404, "not_found")


def unexpected_error() -> ApiError:
    return ApiError(500, "unexpected_error")


def issues_from_validation_error(exc) -> list[dict]:
    out = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in (err.get("loc") or ()))
        out.append(issue(loc, str(err.get("msg") or "invalid"), str(err.get("type") or "invalid")))
    return out
