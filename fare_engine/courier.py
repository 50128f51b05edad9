"""Dynamic pricing for courier deliveries.

Price factors are applied in a fixed order: size base, tiered distance,
speed tier, time of day (compounding on the speed-adjusted amount), flat
fees, then the shared-route discount and a floor of half the base price.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fare_engine.core.exceptions import InvalidInputError
from fare_engine.formatting import Locale, format_currency
from fare_engine.money import QUEBEC_TAXES, ZERO, TaxConstants, apply_taxes, round_money, to_decimal
from fare_engine.rates import (
    DEFAULT_TIMEZONE,
    MAX_DISTANCE_KM,
    Timestamp,
    load_timezone,
    to_local_datetime,
)


class PackageSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class DeliverySpeed(str, Enum):
    EXPRESS = "express"
    PRIORITY = "priority"
    STANDARD = "standard"
    SHARED = "shared"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"
    AFTER_MIDNIGHT = "after_midnight"


class WeatherCondition(str, Enum):
    CLEAR = "clear"
    RAIN = "rain"
    SNOW = "snow"
    EXTREME = "extreme"  # blizzard, ice storm


class InsuranceLevel(str, Enum):
    NONE = "none"
    BASIC = "basic"  # up to $100
    PREMIUM = "premium"  # up to $500
    FULL = "full"  # up to $2000


class SizeRate(BaseModel):
    model_config = ConfigDict(frozen=True)

    base: Decimal
    per_km_after_free: Decimal


class SpeedTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    multiplier: Decimal
    eta: str
    eta_fr: str


SIZE_RATES: dict[PackageSize, SizeRate] = {
    PackageSize.SMALL: SizeRate(base=Decimal("8.99"), per_km_after_free=Decimal("1.50")),
    PackageSize.MEDIUM: SizeRate(base=Decimal("14.99"), per_km_after_free=Decimal("2.00")),
    PackageSize.LARGE: SizeRate(base=Decimal("24.99"), per_km_after_free=Decimal("2.50")),
}

SPEED_TIERS: dict[DeliverySpeed, SpeedTier] = {
    DeliverySpeed.EXPRESS: SpeedTier(multiplier=Decimal("1.75"), eta="1-2 hours", eta_fr="1-2 heures"),
    DeliverySpeed.PRIORITY: SpeedTier(multiplier=Decimal("1.35"), eta="2-4 hours", eta_fr="2-4 heures"),
    DeliverySpeed.STANDARD: SpeedTier(multiplier=Decimal("1.0"), eta="Same day", eta_fr="Même jour"),
    DeliverySpeed.SHARED: SpeedTier(
        multiplier=Decimal("0.75"), eta="Same day (flexible)", eta_fr="Même jour (flexible)"
    ),
}

TIME_MULTIPLIERS: dict[TimeOfDay, Decimal] = {
    TimeOfDay.MORNING: Decimal("1.0"),  # 06:00-12:00
    TimeOfDay.AFTERNOON: Decimal("1.0"),  # 12:00-17:00
    TimeOfDay.EVENING: Decimal("1.15"),  # 17:00-21:00
    TimeOfDay.NIGHT: Decimal("1.25"),  # 21:00-24:00
    TimeOfDay.AFTER_MIDNIGHT: Decimal("1.50"),  # 00:00-06:00
}

WEATHER_SURCHARGES: dict[WeatherCondition, Decimal] = {
    WeatherCondition.CLEAR: ZERO,
    WeatherCondition.RAIN: Decimal("2.99"),
    WeatherCondition.SNOW: Decimal("4.99"),
    WeatherCondition.EXTREME: Decimal("9.99"),
}

INSURANCE_FEES: dict[InsuranceLevel, Decimal] = {
    InsuranceLevel.NONE: ZERO,
    InsuranceLevel.BASIC: Decimal("2.99"),
    InsuranceLevel.PREMIUM: Decimal("7.99"),
    InsuranceLevel.FULL: Decimal("14.99"),
}

FRAGILE_FEE = Decimal("2.99")
SIGNATURE_FEE = Decimal("1.99")

FREE_KM = Decimal("3")
LONG_DISTANCE_KM = Decimal("15")
VERY_LONG_DISTANCE_KM = Decimal("30")
LONG_DISTANCE_RATE_FACTOR = Decimal("0.9")
VERY_LONG_DISTANCE_RATE_FACTOR = Decimal("0.8")

TWO_WAY_SHARE_DISCOUNT = Decimal("0.15")
MULTI_WAY_SHARE_DISCOUNT = Decimal("0.25")
SHAREABLE_SPEEDS = {DeliverySpeed.STANDARD, DeliverySpeed.SHARED}

PRICE_FLOOR_SHARE = Decimal("0.5")


class CourierPricingInput(BaseModel):
    """Static attributes of a delivery plus the injected environment signals."""

    model_config = ConfigDict(frozen=True)

    package_size: PackageSize
    distance_km: float = Field(ge=0, le=MAX_DISTANCE_KM, allow_inf_nan=False)
    delivery_speed: DeliverySpeed
    is_fragile: bool = False
    time_of_day: TimeOfDay = TimeOfDay.AFTERNOON
    weather: WeatherCondition = WeatherCondition.CLEAR
    signature_required: bool = False
    insurance_level: InsuranceLevel = InsuranceLevel.NONE
    can_share_route: bool = False
    share_partner_count: int = Field(default=0, ge=0)


class CourierPriceBreakdown(BaseModel):
    """Itemized courier price. ``speed_surcharge`` is negative for the shared tier."""

    model_config = ConfigDict(frozen=True)

    base_price: Decimal = Field(ge=0)
    distance_price: Decimal = Field(ge=0)
    speed_surcharge: Decimal
    time_surcharge: Decimal = Field(ge=0)
    weather_surcharge: Decimal = Field(ge=0)
    fragile_fee: Decimal = Field(ge=0)
    signature_fee: Decimal = Field(ge=0)
    insurance_fee: Decimal = Field(ge=0)
    shared_discount: Decimal = Field(ge=0)
    subtotal: Decimal = Field(ge=0)
    gst: Decimal = Field(ge=0)
    qst: Decimal = Field(ge=0)
    total_taxes: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)
    savings: Decimal = Field(ge=0)
    estimated_delivery: str
    estimated_delivery_fr: str


class CourierQuoteSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: str
    eta: str
    has_savings: bool
    savings_amount: str
    shared_delivery_available: bool


class CourierQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: CourierPriceBreakdown
    summary: CourierQuoteSummary


def distance_price(distance_km: Decimal, rate: SizeRate) -> Decimal:
    """Charge for the kilometres beyond the free allowance.

    Long-distance discounts are chosen from the total trip distance, not the
    chargeable part.
    """
    if distance_km <= FREE_KM:
        return ZERO
    per_km = rate.per_km_after_free
    if distance_km > VERY_LONG_DISTANCE_KM:
        per_km *= VERY_LONG_DISTANCE_RATE_FACTOR
    elif distance_km > LONG_DISTANCE_KM:
        per_km *= LONG_DISTANCE_RATE_FACTOR
    return round_money((distance_km - FREE_KM) * per_km)


def shared_discount_rate(pricing: CourierPricingInput) -> Decimal:
    if not pricing.can_share_route or pricing.delivery_speed not in SHAREABLE_SPEEDS:
        return ZERO
    if pricing.share_partner_count >= 2:
        return MULTI_WAY_SHARE_DISCOUNT
    if pricing.share_partner_count == 1:
        return TWO_WAY_SHARE_DISCOUNT
    return ZERO


class CourierPricingCalculator:
    """Calculates itemized, tax-inclusive courier prices."""

    def __init__(self, taxes: TaxConstants = QUEBEC_TAXES) -> None:
        self.taxes = taxes

    def calculate(self, pricing: CourierPricingInput) -> CourierPriceBreakdown:
        rate = SIZE_RATES[pricing.package_size]
        tier = SPEED_TIERS[pricing.delivery_speed]

        base_price = rate.base
        dist_price = distance_price(to_decimal(pricing.distance_km), rate)
        base_subtotal = base_price + dist_price

        speed_surcharge = round_money(base_subtotal * (tier.multiplier - 1))
        time_multiplier = TIME_MULTIPLIERS[pricing.time_of_day]
        time_surcharge = round_money((base_subtotal + speed_surcharge) * (time_multiplier - 1))

        weather_surcharge = WEATHER_SURCHARGES[pricing.weather]
        fragile_fee = FRAGILE_FEE if pricing.is_fragile else ZERO
        signature_fee = SIGNATURE_FEE if pricing.signature_required else ZERO
        insurance_fee = INSURANCE_FEES[pricing.insurance_level]

        subtotal_before_discount = (
            base_subtotal
            + speed_surcharge
            + time_surcharge
            + weather_surcharge
            + fragile_fee
            + signature_fee
            + insurance_fee
        )
        shared_discount = round_money(subtotal_before_discount * shared_discount_rate(pricing))
        subtotal = max(
            subtotal_before_discount - shared_discount,
            round_money(base_price * PRICE_FLOOR_SHARE),
        )

        taxes = apply_taxes(subtotal, self.taxes)

        express_multiplier = SPEED_TIERS[DeliverySpeed.EXPRESS].multiplier
        express_subtotal = round_money(base_subtotal * express_multiplier)
        savings = max(ZERO, express_subtotal - subtotal + shared_discount)

        return CourierPriceBreakdown(
            base_price=base_price,
            distance_price=dist_price,
            speed_surcharge=speed_surcharge,
            time_surcharge=time_surcharge,
            weather_surcharge=weather_surcharge,
            fragile_fee=fragile_fee,
            signature_fee=signature_fee,
            insurance_fee=insurance_fee,
            shared_discount=shared_discount,
            subtotal=subtotal,
            gst=taxes.gst,
            qst=taxes.qst,
            total_taxes=taxes.total_taxes,
            total=subtotal + taxes.total_taxes,
            savings=savings,
            estimated_delivery=tier.eta,
            estimated_delivery_fr=tier.eta_fr,
        )


def build_pricing_input(**fields: object) -> CourierPricingInput:
    """Validate raw courier attributes, raising InvalidInputError on bad values."""
    try:
        return CourierPricingInput(**fields)
    except ValidationError as e:
        raise InvalidInputError.from_validation_error("courier pricing input", e) from e


def calculate_courier_price(pricing: CourierPricingInput | dict) -> CourierPriceBreakdown:
    if not isinstance(pricing, CourierPricingInput):
        pricing = build_pricing_input(**pricing)
    return CourierPricingCalculator().calculate(pricing)


def time_of_day_for(timestamp: Timestamp, timezone: str = DEFAULT_TIMEZONE) -> TimeOfDay:
    """Classify a pickup time into a time-of-day pricing band."""
    hour = to_local_datetime(timestamp, load_timezone(timezone)).hour
    if hour < 6:
        return TimeOfDay.AFTER_MIDNIGHT
    if hour < 12:
        return TimeOfDay.MORNING
    if hour < 17:
        return TimeOfDay.AFTERNOON
    if hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def generate_price_quote(
    pricing: CourierPricingInput | dict,
    locale: Locale | str = Locale.EN_CA,
    calculator: CourierPricingCalculator | None = None,
) -> CourierQuote:
    """Price a delivery and prepare the display strings for the quote screen."""
    if not isinstance(pricing, CourierPricingInput):
        pricing = build_pricing_input(**pricing)
    price = (calculator or CourierPricingCalculator()).calculate(pricing)
    locale = Locale(locale)
    return CourierQuote(
        price=price,
        summary=CourierQuoteSummary(
            total=format_currency(price.total, locale),
            eta=price.estimated_delivery_fr if locale == Locale.FR_CA else price.estimated_delivery,
            has_savings=price.savings > 0,
            savings_amount=format_currency(price.savings, locale),
            shared_delivery_available=price.shared_discount > 0,
        ),
    )


def current_time_of_day(timezone: str = DEFAULT_TIMEZONE) -> TimeOfDay:
    return time_of_day_for(datetime.now().astimezone(), timezone)
