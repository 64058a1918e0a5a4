from __future__ import annotations

import re

EL_SALVADOR_COUNTRY_CODE = "503"
LOCAL_DIGITS = 8

_NON_DIGITS = re.compile(r"\D+")


class InvalidPhoneNumber(ValueError):
    pass


def normalize_whatsapp(raw: str | None) -> str | None:
    """
    Canonical +503XXXXXXXX form. Blank input means "no number" (None);
    anything that is not 8 local digits, optionally behind 503, is rejected.
    """
    text = (raw or "").strip()
    if not text:
        return None
    digits = _NON_DIGITS.sub("", text)
    if len(digits) == LOCAL_DIGITS + len(EL_SALVADOR_COUNTRY_CODE) and digits.startswith(EL_SALVADOR_COUNTRY_CODE):
        digits = digits[len(EL_SALVADOR_COUNTRY_CODE):]
    if len(digits) != LOCAL_DIGITS:
        raise InvalidPhoneNumber(f"expected {LOCAL_DIGITS} local digits")
    return f"+{EL_SALVADOR_COUNTRY_CODE}{digits}"


def whatsapp_url(raw: str | None) -> str | None:
    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        return None
    return f"https://wa.me/{digits}"
