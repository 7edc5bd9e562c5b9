from orderbot.services.normalizer import (
    canonical_phone,
    normalize_address,
    normalize_phone_number,
    validate_phone_number,
)


def test_validate_phone_number_accepts_mobile_prefixes():
    for value in ["99119911", "9911-9911", "8811 2233", "66001122", "70112233"]:
        assert validate_phone_number(value) is True


def test_validate_phone_number_rejects_wrong_prefix_or_length():
    for value in ["12345678", "50112233", "9911991", "991199110", "+976 9911 9911", "", None]:
        assert validate_phone_number(value) is False


def test_normalize_phone_number_only_strips_and_checks_length():
    assert normalize_phone_number("9911-9911") == "99119911"
    assert normalize_phone_number(" 9911 9911 ") == "99119911"
    # canonical form does not check the mobile prefix
    assert normalize_phone_number("12345678") == "12345678"
    assert normalize_phone_number("991199") is None
    assert normalize_phone_number(None) is None


def test_canonical_phone_requires_both_rules():
    assert canonical_phone("9911-9911") == "99119911"
    assert canonical_phone("12345678") is None
    assert canonical_phone("phone: none") is None


def test_normalize_address_expands_district_abbreviations():
    assert normalize_address("БЗД, 1-р хороо") == "Баянзүрх дүүрэг, 1-р хороо"
    assert normalize_address("схд 12 хороо") == "Сонгинохайрхан дүүрэг 12-р хороо"
    assert normalize_address("bzd 3 khoroo") == "Баянзүрх дүүрэг 3-р хороо"
    assert normalize_address("ХУД. 5-р хороо") == "Хан-Уул дүүрэг 5-р хороо"


def test_normalize_address_keeps_khoroolol_and_free_text():
    assert normalize_address("3-р хороолол, 25-р байр") == "3-р хороолол, 25-р байр"
    assert normalize_address("Энх тайвны өргөн чөлөө") == "Энх тайвны өргөн чөлөө"


def test_normalize_address_collapses_whitespace_and_empty_input():
    assert normalize_address("  БГД ,   4   хороо ;") == "Баянгол дүүрэг , 4-р хороо"
    assert normalize_address("   ") is None
    assert normalize_address(None) is None


def test_normalizers_are_idempotent():
    for value in ["БЗД, 1-р хороо", "bzd 3 khoroo 15-р байр", "сбд 8 хороо", "Хан-Уул дүүрэг"]:
        once = normalize_address(value)
        assert normalize_address(once) == once
    for value in ["9911-9911", "12345678", "88 11 22 33"]:
        once = normalize_phone_number(value)
        assert normalize_phone_number(once) == once
