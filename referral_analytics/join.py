# -*- coding: utf-8 -*-

"""
Cross-dataset attribution: diagnosis email <-> referral_complete email.

The most recent referral_complete per lowercased completer email decides the
referrer a diagnosis record is attributed to ("latest complete wins"; ties
keep the first one seen). Records without an email are never referred.
"""

import logging

import pandas as pd

from .config import EVENT_COMPLETE
from .normalize import present

logger = logging.getLogger(__name__)


def build_complete_email_map(events: pd.DataFrame) -> dict:
    """email_lower -> {"referrer_id", "ts"} of the latest referral_complete."""
    mapping = {}
    completes = events[(events["event_type"] == EVENT_COMPLETE) & events["user_email_lower"].notna()]
    for event in completes.itertuples(index=False):
        if not present(event.user_email_lower):
            continue
        ts = None if pd.isna(event.ts) else event.ts
        prev = mapping.get(event.user_email_lower)
        if prev is None or (ts is not None and (prev["ts"] is None or ts > prev["ts"])):
            referrer = event.referrer_id if present(event.referrer_id) else None
            mapping[event.user_email_lower] = {"referrer_id": referrer, "ts": ts}
    return mapping


def attach_referrals(diagnosis: pd.DataFrame, complete_map: dict) -> pd.DataFrame:
    """Copy of the diagnosis frame with referred/referrer_id/referral_complete_ts set."""
    out = diagnosis.copy()
    info = [complete_map.get(e) if present(e) else None for e in out["email_lower"]]

    out["referred"] = pd.Series([i is not None for i in info], index=out.index, dtype=bool)
    out["referrer_id"] = pd.Series([i["referrer_id"] if i else None for i in info], index=out.index, dtype=object)
    out["referral_complete_ts"] = pd.to_datetime(
        pd.Series([i["ts"] if i else None for i in info], index=out.index, dtype=object)
    )

    logger.info(
        f"✓ Attributed {int(out['referred'].sum()):,} of {len(out):,} diagnosis records "
        f"to {len(complete_map):,} completer emails"
    )
    return out
