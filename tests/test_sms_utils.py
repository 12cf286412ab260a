import pytest

from message_dispatch.sms_utils import count_segments, is_gsm7, normalize_phone_number


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("(555) 123-4567", "+15551234567"),
        ("1-555-123-4567", "+15551234567"),
        ("+44 20 7946 0958", "+442079460958"),
        ("447911123456", "+447911123456"),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


def test_is_gsm7():
    assert is_gsm7("Hello, your class starts at 9:00!")
    assert is_gsm7("Café über")
    assert not is_gsm7("Привет")
    assert not is_gsm7("Price: 10€")


def test_gsm_segments():
    assert count_segments("") == 1
    assert count_segments("a" * 160) == 1
    assert count_segments("a" * 161) == 2
    assert count_segments("a" * 306) == 2
    assert count_segments("a" * 307) == 3


def test_unicode_segments_count_utf16_units():
    assert count_segments("Ж" * 70) == 1
    assert count_segments("a" * 70 + "Ж") == 2
    # each emoji is a surrogate pair
    assert count_segments("😀" * 35) == 1
    assert count_segments("😀" * 36) == 2
