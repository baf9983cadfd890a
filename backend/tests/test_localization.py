"""Tests for localized status labels."""

from app.services.localization import LABELS, SUPPORTED_LOCALES, status_label, translate
from app.services.reference_ranges import Status


def test_every_locale_has_every_key():
    keys = set(LABELS["en"])
    for locale, labels in LABELS.items():
        assert set(labels) == keys, locale


def test_every_status_has_label():
    for status in Status:
        assert status.value in LABELS["en"]


def test_supported_locales():
    assert SUPPORTED_LOCALES == ("en", "ru")


def test_status_label_english():
    assert status_label(Status.HIGH) == "High"
    assert status_label("unknown", "en") == "Not evaluated"


def test_status_label_russian():
    assert status_label(Status.LOW, "ru") == "Ниже нормы"


def test_unknown_locale_falls_back_to_english():
    assert translate("summary.normal", "de") == "All Results Normal"


def test_unknown_key_returns_key():
    assert translate("nope", "ru") == "nope"
