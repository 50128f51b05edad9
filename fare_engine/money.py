"""Money and sales tax primitives shared by the taxi and courier calculators.

Amounts are ``Decimal`` values quantized to the cent with ROUND_HALF_UP. Each
line item is rounded where it is computed, and totals are sums of rounded
lines so a printed receipt always adds up.
"""

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Decimal | float | int | str) -> Decimal:
    """Convert a numeric input to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal | float | int | str) -> Decimal:
    """Round an amount to cents, halves away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class TaxConstants(BaseModel):
    """Federal (GST/TPS) and provincial (QST/TVQ) sales tax rates."""

    model_config = ConfigDict(frozen=True)

    gst_rate: Decimal = Field(ge=0, le=1)
    qst_rate: Decimal = Field(ge=0, le=1)

    @property
    def combined_rate(self) -> Decimal:
        return self.gst_rate + self.qst_rate


QUEBEC_TAXES = TaxConstants(gst_rate=Decimal("0.05"), qst_rate=Decimal("0.09975"))


class TaxBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    gst: Decimal
    qst: Decimal
    total_taxes: Decimal


def apply_taxes(taxable: Decimal, taxes: TaxConstants = QUEBEC_TAXES) -> TaxBreakdown:
    """Compute GST and QST on the same taxable base.

    Quebec taxes do not compound: QST is charged on the pre-tax amount, not on
    the amount plus GST.
    """
    gst = round_money(taxable * taxes.gst_rate)
    qst = round_money(taxable * taxes.qst_rate)
    return TaxBreakdown(gst=gst, qst=qst, total_taxes=gst + qst)
