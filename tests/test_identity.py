from cleanops.services.identity import (
    UNKNOWN_CLEANER,
    cleaner_key,
    full_name,
    normalize_cleaner_name,
    normalize_cleaner_numeric_id,
)


def test_normalize_cleaner_name_collapses_whitespace():
    assert normalize_cleaner_name("  Jackie    Palmer ") == "Jackie Palmer"


def test_normalize_cleaner_name_empty_is_unknown():
    assert normalize_cleaner_name(None) == UNKNOWN_CLEANER
    assert normalize_cleaner_name("   ") == UNKNOWN_CLEANER


def test_numeric_id_plain_digits():
    assert normalize_cleaner_numeric_id("42") == 42
    assert normalize_cleaner_numeric_id(7) == 7


def test_numeric_id_rejects_uuid_and_text():
    assert normalize_cleaner_numeric_id("8f14e45f-ceea-4f4a-9a2b-1c7c3c1d2a11") is None
    assert normalize_cleaner_numeric_id("abc") is None
    assert normalize_cleaner_numeric_id("") is None
    assert normalize_cleaner_numeric_id(None) is None


def test_cleaner_key_prefers_uuid_then_id_then_name():
    assert cleaner_key("u-1", 5, "Ava") == "u-1"
    assert cleaner_key(None, 5, "Ava") == "5"
    assert cleaner_key(None, None, " Ava  Jones ") == "Ava Jones"


def test_full_name():
    assert full_name("Ava", None) == "Ava"
    assert full_name(None, None) == UNKNOWN_CLEANER
