from __future__ import annotations

import re


_PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")
_PHONE_NOISE = re.compile(r"[\s\-().]")


def normalize_phone(raw: str) -> str | None:
    """
    Phone normalization for display and contact links.

    Accepts digits and an optional leading '+'. Returns normalized phone
    (digits with optional '+') or None if the value looks invalid.
    Imports compare phone numbers as entered, so this is never used for dedupe.
    """

    value = _PHONE_NOISE.sub("", raw.strip())
    if not _PHONE_REGEX.match(value):
        return None
    return value


def contact_links(raw: str) -> dict[str, str]:
    """
    Build `tel:` and WhatsApp links for a phone number.

    Returns an empty dict when the number cannot be normalized.
    """

    phone = normalize_phone(raw)
    if phone is None:
        return {}
    return {
        "tel": f"tel:{phone}",
        "whatsapp": f"https://wa.me/{phone.lstrip('+')}",
    }
