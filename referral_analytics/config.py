# -*- coding: utf-8 -*-

"""
Analysis constants shared by every stage.

Source columns are resolved through ordered name lists: the first name
present with a non-blank value wins. Thresholds below are the defaults the
views use; the CLI exposes the ones that matter at run time.
"""

# ============================================================================
# SHEETS
# ============================================================================

DIAGNOSIS_SHEET = "diagnosis"
REFERRAL_SHEET = "referral_events"

# ============================================================================
# SOURCE COLUMN NAMES
# ============================================================================

DIAGNOSIS_FIELDS = {
    "created_at": ("createdAt", "created_at", "timestamp"),
    "email": ("email", "userEmail", "mail"),
    "name": ("name",),
    "gender": ("gender",),
    "age": ("age",),
    "type": ("type",),
    "interested": ("interested",),
    "answers": ("answers_json", "answers"),
    "raw_json": ("raw_json",),
}

AXIS_COLUMNS = ("axisA", "axisB", "axisC", "axisD")

EVENT_FIELDS = {
    "timestamp": ("timestamp", "createdAt", "time"),
    "event_type": ("eventType", "type", "event"),
    "user_id": ("userId",),
    "referrer_id": ("referrerId",),
    "edge": ("edge",),
    "payload": ("payload_json", "payload", "data"),
}

PAYLOAD_FIELDS = {
    "platform": ("platform",),
    "user_email": ("userEmail", "email"),
    "user_name": ("userName",),
    "user_type": ("userType",),
    "gender": ("gender",),
}

# ============================================================================
# VOCABULARY
# ============================================================================

EVENT_SHARE = "share"
EVENT_VISIT = "referral_visit"
EVENT_COMPLETE = "referral_complete"
EVENT_TYPES = (EVENT_SHARE, EVENT_VISIT, EVENT_COMPLETE)

UNKNOWN_PLATFORM = "unknown"
UNKNOWN_TYPE = "(unknown)"
NO_EMAIL_PREFIX = "__noemail__"

TRUTHY_STRINGS = {"1", "true", "yes"}

# ============================================================================
# THRESHOLDS
# ============================================================================

COHORT_MIN_N = 10
COHORT_TOP_N = 20
DIAGNOSIS_SIGNAL_TOP_N = 15
ANSWER_DIFF_MIN_N = 5
FAVORITE_ANSWER_DIFF_MIN_N = 10
ANSWER_DIFF_TOP_N = 10
TYPE_RATE_MIN_N = 5
TYPE_TOP_N = 20
BOX_TOP_GROUPS = 10
AXIS_RANGE = (0.0, 100.0)
DEFAULT_MIN_EDGE = 1
HISTOGRAM_BINS = 20
MASK_WIDTH = 6
