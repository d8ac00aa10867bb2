from portfolio_api.hashing import (
    generate_rate_key,
    hash_string,
    intent_cache_key,
    layout_cache_key,
    normalize_intent,
    session_rate_key,
    tag_key,
)


def test_hash_known_values():
    assert hash_string("") == "0"
    assert hash_string("a") == "2p"
    assert hash_string("ab") == "2e9"


def test_hash_is_deterministic_and_total():
    for s in ["", "recruiter", "x" * 5000, "emoji \U0001F600", "ünïcødé"]:
        assert hash_string(s) == hash_string(s)
        assert hash_string(s).isalnum()


def test_distinct_short_inputs_hash_differently():
    words = ["recruiter", "developer", "collaborator", "friend", "investor", "student"]
    assert len({hash_string(w) for w in words}) == len(words)


def test_hash_wraps_to_signed_32_bit():
    # Long inputs overflow repeatedly; the result stays a non-negative base-36 int32.
    value = int(hash_string("overflow" * 100), 36)
    assert 0 <= value <= 2 ** 31


def test_normalize_intent():
    assert normalize_intent("  RECRUITER  ") == "recruiter"
    assert normalize_intent("a" * 80) == "a" * 50


def test_intent_key_ignores_case_and_whitespace():
    assert intent_cache_key("  RECRUITER  ") == intent_cache_key("recruiter")
    assert intent_cache_key("recruiter").startswith("intent:")


def test_simple_keys():
    assert tag_key("investor") == "tag:investor"
    assert session_rate_key("abc") == "ratelimit:abc"
    assert generate_rate_key("1.2.3.4") == "ratelimit:generate:1.2.3.4"


def test_layout_cache_key_shape():
    key = layout_cache_key("developer", "mobile", "evening", None)
    assert key == f"layout:developer:default:{hash_string('mobile:evening:XX')}"
    custom = layout_cache_key("investor", "desktop", "morning", "US", "Focus on ROI")
    assert custom == f"layout:investor:{hash_string('Focus on ROI')}:{hash_string('desktop:morning:US')}"
