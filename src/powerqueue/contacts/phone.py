"""
Phone number normalization and display formatting.

Storage always holds the normalized form (`+` followed by digits);
display formatting is a presentation transform only.
"""

import re

_NON_DIGIT = re.compile(r"\D")
_DIGIT_RUN = re.compile(r"\d+")
_EXTENSION = re.compile(r"(?:ext\.?|x|xt|extension)\s*\.?:?\s*(\d{1,6})", re.IGNORECASE)


def normalize_phone(phone: str | None) -> str:
    """Normalize a phone number to `+<digits>`.

    Ten-digit numbers are treated as North American and get a `+1` prefix;
    eleven digits starting with `1` just get the `+`. Anything else with
    digits is kept as-is behind a `+`. No digits at all yields "".
    """
    cleaned = _NON_DIGIT.sub("", phone or "")
    if len(cleaned) == 10:
        return "+1" + cleaned
    if len(cleaned) == 11 and cleaned[0] == "1":
        return "+" + cleaned
    return "+" + cleaned if cleaned else ""


def phone_digits(phone: str | None) -> str:
    """Digit-only form used for search matching."""
    return _NON_DIGIT.sub("", phone or "")


def format_display_phone(raw: str | None) -> str:
    """Render a phone as `(AAA) PPP - LLLL`, keeping any extension.

    Inputs with fewer than ten digits are returned trimmed and otherwise
    untouched.
    """
    if not raw:
        return ""
    ext_match = _EXTENSION.search(raw)
    ext = ext_match.group(1) if ext_match else ""
    digits = "".join(_DIGIT_RUN.findall(raw))
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) < 10:
        return raw.strip()
    area, prefix, line = digits[0:3], digits[3:6], digits[6:10]
    formatted = f"({area}) {prefix} - {line}"
    return f"{formatted} ext. {ext}" if ext else formatted


def dial_uri(phone: str) -> str:
    """OS-level dial intent for a stored (normalized) phone number."""
    return f"tel:{phone}"
