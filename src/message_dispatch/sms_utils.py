# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Phone number normalization and SMS segment counting."""

from __future__ import annotations

import re

GSM_7_RE = re.compile(
    r"^[@£$¥èéùìòÇØøÅåΔ_ΦΓΛΩΠΨΣΘΞ !\"#%&'()*+,\-./0-9:;<=>?¡A-ZÄÖÑÜ§¿a-zäöñüà\r\n]*$"
)

GSM_SINGLE = 160
GSM_MULTI = 153
UNICODE_SINGLE = 70
UNICODE_MULTI = 67


def normalize_phone_number(phone: str) -> str:
    """Normalize a phone number to E.164.

    Everything except digits and ``+`` is stripped. Numbers without a
    leading ``+`` are treated as North American when they have 10 digits,
    or 11 digits starting with 1; otherwise ``+`` is simply prepended.

    Example:
        >>> normalize_phone_number("(555) 123-4567")
        '+15551234567'
    """
    cleaned = re.sub(r"[^\d+]", "", phone)
    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return "+" + cleaned
    if len(cleaned) == 10:
        return "+1" + cleaned
    return "+" + cleaned


def is_gsm7(text: str) -> bool:
    return GSM_7_RE.match(text) is not None


def _utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def count_segments(text: str) -> int:
    """Number of SMS segments text occupies.

    GSM-7 text fits 160 chars in one segment, 153 per part when
    concatenated. Anything else is UCS-2: 70 single, 67 per part, length
    counted in UTF-16 code units.
    """
    if is_gsm7(text):
        length, single, multi = len(text), GSM_SINGLE, GSM_MULTI
    else:
        length, single, multi = _utf16_length(text), UNICODE_SINGLE, UNICODE_MULTI
    if length <= single:
        return 1
    return -(-length // multi)


__all__ = ["count_segments", "is_gsm7", "normalize_phone_number"]
