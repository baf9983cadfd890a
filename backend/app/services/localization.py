"""Display strings for statuses and report headings, keyed by locale."""

from app.services.reference_ranges import Status

DEFAULT_LOCALE = "en"

LABELS: dict[str, dict[str, str]] = {
    "en": {
        Status.NORMAL.value: "Normal",
        Status.LOW.value: "Low",
        Status.HIGH.value: "High",
        Status.CRITICAL.value: "Critical",
        Status.UNKNOWN.value: "Not evaluated",
        "summary.abnormal": "Abnormalities Detected",
        "summary.normal": "All Results Normal",
        "summary.incomplete": "Some Results Not Evaluated",
    },
    "ru": {
        Status.NORMAL.value: "Норма",
        Status.LOW.value: "Ниже нормы",
        Status.HIGH.value: "Выше нормы",
        Status.CRITICAL.value: "Критическое значение",
        Status.UNKNOWN.value: "Не оценено",
        "summary.abnormal": "Обнаружены отклонения",
        "summary.normal": "Все показатели в норме",
        "summary.incomplete": "Часть показателей не оценена",
    },
}

SUPPORTED_LOCALES = tuple(LABELS)


def translate(key: str, locale: str | None = None) -> str:
    """Look up a label, falling back to English and then to the key itself."""
    labels = LABELS.get(locale or DEFAULT_LOCALE, LABELS[DEFAULT_LOCALE])
    return labels.get(key) or LABELS[DEFAULT_LOCALE].get(key, key)


def status_label(status: Status | str, locale: str | None = None) -> str:
    return translate(Status(status).value, locale)
