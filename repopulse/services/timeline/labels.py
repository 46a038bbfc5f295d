"""Locale-aware bucket labels (fr, en)."""

from datetime import date

from repopulse.config import settings
from repopulse.config.periods import Granularity

SUPPORTED_LOCALES: tuple[str, ...] = ("fr", "en")

_WEEKDAYS = {
    "fr": ["lun.", "mar.", "mer.", "jeu.", "ven.", "sam.", "dim."],
    "en": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
}

_MONTHS = {
    "fr": ["janv.", "févr.", "mars", "avr.", "mai", "juin", "juil.", "août", "sept.", "oct.", "nov.", "déc."],
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
}


def resolve_locale(locale: str | None) -> str:
    """Supported locale, or the configured default."""
    if locale:
        locale = locale.lower().split("-")[0]
        if locale in SUPPORTED_LOCALES:
            return locale
    return settings.default_locale if settings.default_locale in SUPPORTED_LOCALES else "fr"


def format_label(day: date, granularity: Granularity, locale: str | None = None) -> str:
    """
    Short display label for a bucket.

    daily:  "lun. 3" / "Mon 3"
    weekly: "janv. 24" / "Jan 24"
    """
    lang = resolve_locale(locale)
    if granularity is Granularity.DAILY:
        return f"{_WEEKDAYS[lang][day.weekday()]} {day.day}"
    return f"{_MONTHS[lang][day.month - 1]} {day.year % 100:02d}"
