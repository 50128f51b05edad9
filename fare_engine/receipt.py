"""Taxi receipts as required by the MTQ (Ministere des Transports du Quebec).

The receipt must show the regulatory fee on its own line and each tax
separately.
"""

import random
import string
import time
from collections.abc import Callable
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from fare_engine.fare import FareBreakdown
from fare_engine.formatting import Locale, format_currency, format_distance, format_duration
from fare_engine.money import QUEBEC_TAXES

RECEIPT_PREFIX = "QC"
_BASE36 = string.digits + string.ascii_uppercase


class TaxiReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    receipt_number: str
    issued_at: datetime
    driver_name: str
    driver_permit_number: str
    vehicle_plate: str
    company_name: str | None = None
    pickup_address: str
    dropoff_address: str
    distance_km: float = Field(ge=0)
    duration_minutes: float = Field(ge=0)
    fare: FareBreakdown
    payment_method: Literal["cash", "card"]
    gst_number: str | None = None
    qst_number: str | None = None


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_receipt_number(
    clock: Callable[[], float] = time.time,
    rng: random.Random | None = None,
) -> str:
    """Receipt number ``QC-<millisecond timestamp>-<4 random chars>``, both base 36."""
    rng = rng or random.Random()
    timestamp = _to_base36(int(clock() * 1000))
    suffix = "".join(rng.choice(_BASE36) for _ in range(4))
    return f"{RECEIPT_PREFIX}-{timestamp}-{suffix}"


_LABELS = {
    Locale.EN_CA: {
        "title": "Receipt",
        "from": "From",
        "to": "To",
        "distance": "Distance",
        "duration": "Duration",
        "fare_subtotal": "Fare Subtotal",
        "regulatory_fee": "Regulatory Fee",
        "gst": "GST",
        "qst": "QST",
        "total": "Total",
        "driver": "Driver",
        "permit": "Permit",
        "vehicle": "Vehicle",
        "payment": "Payment",
        "cash": "Cash",
        "card": "Card",
        "night_rate": "Night rate (B)",
        "day_rate": "Day rate (A)",
    },
    Locale.FR_CA: {
        "title": "Reçu",
        "from": "De",
        "to": "À",
        "distance": "Distance",
        "duration": "Durée",
        "fare_subtotal": "Sous-total course",
        "regulatory_fee": "Frais réglementaires",
        "gst": "TPS",
        "qst": "TVQ",
        "total": "Total",
        "driver": "Chauffeur",
        "permit": "Permis",
        "vehicle": "Véhicule",
        "payment": "Paiement",
        "cash": "Comptant",
        "card": "Carte",
        "night_rate": "Tarif de nuit (B)",
        "day_rate": "Tarif de jour (A)",
    },
}


def _percent(rate, locale: Locale) -> str:
    text = f"{rate * 100:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if locale == Locale.FR_CA:
        return f"{text.replace('.', ',')} %"
    return f"{text}%"


def render_receipt_text(receipt: TaxiReceipt, locale: Locale | str = Locale.EN_CA) -> str:
    """Plain-text receipt for sharing by message or email."""
    locale = Locale(locale)
    labels = _LABELS[locale]
    fare = receipt.fare

    def money(amount) -> str:
        return format_currency(amount, locale)

    lines = [
        f"{labels['title']} {receipt.receipt_number}",
        receipt.issued_at.strftime("%Y-%m-%d %H:%M"),
        "",
        f"{labels['from']}: {receipt.pickup_address}",
        f"{labels['to']}: {receipt.dropoff_address}",
        "",
        f"{labels['distance']}: {format_distance(receipt.distance_km, locale)}",
        f"{labels['duration']}: {format_duration(receipt.duration_minutes, locale)}",
        labels["night_rate"] if fare.is_night_rate else labels["day_rate"],
        "",
        f"{labels['fare_subtotal']}: {money(fare.fare_subtotal)}",
        f"{labels['regulatory_fee']}: {money(fare.regulatory_fee)}",
        f"{labels['gst']} ({_percent(QUEBEC_TAXES.gst_rate, locale)}): {money(fare.gst)}",
        f"{labels['qst']} ({_percent(QUEBEC_TAXES.qst_rate, locale)}): {money(fare.qst)}",
        f"{labels['total']}: {money(fare.total)}",
        "",
        f"{labels['payment']}: {labels[receipt.payment_method]}",
        f"{labels['driver']}: {receipt.driver_name}",
        f"{labels['permit']}: {receipt.driver_permit_number}",
        f"{labels['vehicle']}: {receipt.vehicle_plate}",
    ]
    if receipt.company_name:
        lines.append(receipt.company_name)
    if receipt.gst_number:
        lines.append(f"{labels['gst']}: {receipt.gst_number}")
    if receipt.qst_number:
        lines.append(f"{labels['qst']}: {receipt.qst_number}")
    return "\n".join(lines)
