"""Tests for deterministic identifier masking."""

import re

from referral_analytics.masking import mask_email, mask_id, short_hash


def test_masking_is_deterministic():
    assert mask_id("u", "alice@example.com") == mask_id("u", "alice@example.com")
    assert mask_id("r", "r1") == mask_id("r", "r1")


def test_format():
    masked = mask_id("r", "referrer-123")
    assert re.fullmatch(r"r_[0-9a-z]{6,7}", masked)


def test_known_values():
    # djb2: 5381 * 33 + ord("a") = 177670 -> base36 "3t3a"
    assert short_hash("a") == "003t3a"
    assert short_hash("") == "00045h"


def test_astral_characters_hash_as_surrogate_pairs():
    # U+1F600 is two UTF-16 code units: 0xD83D 0xDE00
    assert short_hash("\U0001F600") == "04lyxu"


def test_different_inputs_differ():
    assert mask_id("u", "a@x.com") != mask_id("u", "b@x.com")
    assert mask_id("u", "x") != mask_id("r", "x")


def test_empty_masks_to_empty():
    assert mask_id("u", "") == ""
    assert mask_id("u", None) == ""
    assert mask_id("u", float("nan")) == ""


def test_mask_email_fallbacks():
    assert mask_email("a@x.com", "A@x.com", 3) == mask_id("u", "a@x.com")
    assert mask_email(None, "", 3) == mask_id("u", "row-3")
    assert mask_email(None, None, None) == ""
