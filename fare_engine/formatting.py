"""Locale-aware display of money, distance and duration (fr-CA / en-CA)."""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from fare_engine.money import round_money, to_decimal


class Locale(str, Enum):
    FR_CA = "fr-CA"
    EN_CA = "en-CA"

    @classmethod
    def _missing_(cls, value: object) -> "Locale | None":
        # Bare language codes as sent by the mobile app
        if isinstance(value, str):
            language = value.split("-")[0].split("_")[0].lower()
            if language == "fr":
                return cls.FR_CA
            if language == "en":
                return cls.EN_CA
        return None


def format_currency(amount: Decimal | float | int, locale: Locale | str = Locale.EN_CA) -> str:
    """Render an amount in dollars: ``10,50 $`` in French, ``$10.50`` in English."""
    locale = Locale(locale)
    value = round_money(amount)
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):.2f}"
    if locale == Locale.FR_CA:
        return f"{sign}{digits.replace('.', ',')} $"
    return f"{sign}${digits}"


def format_distance(km: Decimal | float | int, locale: Locale | str = Locale.EN_CA) -> str:
    locale = Locale(locale)
    value = to_decimal(km)
    if value < 1:
        meters = (value * 1000).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return f"{meters} m"
    formatted = f"{value.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}"
    if locale == Locale.FR_CA:
        formatted = formatted.replace(".", ",")
    return f"{formatted} km"


def format_duration(minutes: Decimal | float | int, locale: Locale | str = Locale.EN_CA) -> str:
    locale = Locale(locale)
    value = to_decimal(minutes)
    if value < 1:
        return "< 1 min"
    if value < 60:
        return f"{value.quantize(Decimal('1'), rounding=ROUND_HALF_UP)} min"
    hours = int(value // 60)
    mins = int((value % 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if mins == 60:
        hours, mins = hours + 1, 0
    if locale == Locale.FR_CA:
        return f"{hours} h {mins} min" if mins > 0 else f"{hours} h"
    return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"
