# -*- coding: utf-8 -*-

"""
Deterministic identifier masking.

djb2 over the UTF-16 code units of the identifier, wrapped to 32 bits,
rendered as zero-padded base 36 behind a role tag ("u_", "r_"). No salt:
the same identifier masks identically across views and runs.
"""

import numpy as np

from .config import MASK_WIDTH

USER_TAG = "u"
REFERRER_TAG = "r"


def short_hash(value, width: int = MASK_WIDTH) -> str:
    text = "" if value is None else str(value)
    data = text.encode("utf-16-le")
    h = 5381
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) + h + unit) & 0xFFFFFFFF
    return np.base_repr(h, base=36).lower().rjust(width, "0")


def mask_id(kind: str, raw) -> str:
    """'<kind>_<hash>' for a non-empty identifier, '' otherwise."""
    if raw is None or raw == "" or (isinstance(raw, float) and raw != raw):
        return ""
    return f"{kind}_{short_hash(raw)}"


def _text(value):
    return value if isinstance(value, str) and value else None


def mask_email(email_lower, email=None, row=None) -> str:
    """User mask keyed on the lowercased email, falling back to the row."""
    key = _text(email_lower) or _text(email) or (f"row-{row}" if row is not None else None)
    return mask_id(USER_TAG, key)
