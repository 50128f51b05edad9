from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fare_engine.core.exceptions import InvalidInputError
from fare_engine.money import QUEBEC_TAXES, ZERO, TaxConstants, apply_taxes, round_money, to_decimal
from fare_engine.rates import MAX_DISTANCE_KM

DELIVERY_BASE_FEE = Decimal("4.99")
DELIVERY_PER_KM_AFTER_FREE = Decimal("1.50")
DELIVERY_FREE_KM = Decimal("3")
FREE_DELIVERY_THRESHOLD = Decimal("35.00")


class DeliveryOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    distance_km: float = Field(ge=0, le=MAX_DISTANCE_KM, allow_inf_nan=False)
    order_value: float = Field(ge=0, allow_inf_nan=False)


class DeliveryFeeBreakdown(BaseModel):
    """Food delivery fee. Delivery carries no regulatory fee."""

    model_config = ConfigDict(frozen=True)

    base_fee: Decimal = Field(ge=0)
    distance_fee: Decimal = Field(ge=0)
    is_free_delivery: bool
    subtotal: Decimal = Field(ge=0)
    gst: Decimal = Field(ge=0)
    qst: Decimal = Field(ge=0)
    total_taxes: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)


def calculate_delivery_fee(
    distance_km: float,
    order_value: float,
    taxes: TaxConstants = QUEBEC_TAXES,
) -> DeliveryFeeBreakdown:
    """Fee for delivering a restaurant order.

    Orders at or above the free-delivery threshold pay nothing; otherwise a
    flat fee plus a per-km charge beyond the first 3 km.
    """
    try:
        order = DeliveryOrder(distance_km=distance_km, order_value=order_value)
    except ValidationError as e:
        raise InvalidInputError.from_validation_error("delivery order", e) from e

    if to_decimal(order.order_value) >= FREE_DELIVERY_THRESHOLD:
        base_fee = distance_fee = ZERO
        is_free = True
    else:
        distance = to_decimal(order.distance_km)
        base_fee = DELIVERY_BASE_FEE
        distance_fee = ZERO
        if distance > DELIVERY_FREE_KM:
            distance_fee = round_money((distance - DELIVERY_FREE_KM) * DELIVERY_PER_KM_AFTER_FREE)
        is_free = False

    subtotal = base_fee + distance_fee
    tax = apply_taxes(subtotal, taxes)
    return DeliveryFeeBreakdown(
        base_fee=base_fee,
        distance_fee=distance_fee,
        is_free_delivery=is_free,
        subtotal=subtotal,
        gst=tax.gst,
        qst=tax.qst,
        total_taxes=tax.total_taxes,
        total=subtotal + tax.total_taxes,
    )
