from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Union


def _money(value: Any, field_name: str) -> int:
    # bool is an int subclass, but never a price
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} deve ser inteiro (Rupiah), recebido {value!r}")
    if value < 0:
        raise ValueError(f"{field_name} não pode ser negativo: {value}")
    return value


@dataclass(frozen=True)
class PricingConfig:
    minimum_order_amount: int = 0
    delivery_fee: int = 0
    free_delivery_threshold: int = 0

    def __post_init__(self) -> None:
        _money(self.minimum_order_amount, "minimum_order_amount")
        _money(self.delivery_fee, "delivery_fee")
        _money(self.free_delivery_threshold, "free_delivery_threshold")

    @classmethod
    def from_tenant(cls, tenant: Any) -> "PricingConfig":
        return cls(
            minimum_order_amount=int(getattr(tenant, "minimum_order_amount", 0) or 0),
            delivery_fee=int(getattr(tenant, "delivery_fee", 0) or 0),
            free_delivery_threshold=int(getattr(tenant, "free_delivery_threshold", 0) or 0),
        )


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    discount: int
    delivery_fee: int
    is_free_delivery: bool
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "delivery_fee": self.delivery_fee,
            "is_free_delivery": self.is_free_delivery,
            "total": self.total,
        }


@dataclass(frozen=True)
class PricingValid:
    ok: bool = True


@dataclass(frozen=True)
class PricingInvalid:
    message: str
    ok: bool = False


MinimumCheck = Union[PricingValid, PricingInvalid]


def format_rupiah(amount: int) -> str:
    """Rupiah without decimals, dot as thousands separator: ``Rp 150.000``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {abs(int(amount)):,}".replace(",", ".")


def sum_line_totals(lines: Iterable[Any]) -> int:
    """Sum ``unit_price * qty`` over cart lines (objects or dicts), integers only."""
    total = 0
    for line in lines:
        if isinstance(line, dict):
            unit_price = line.get("unit_price")
            qty = line.get("qty", line.get("quantity"))
        else:
            unit_price = getattr(line, "unit_price", None)
            qty = getattr(line, "qty", getattr(line, "quantity", None))
        total += _money(unit_price, "unit_price") * _money(qty, "qty")
    return total


def calculate(subtotal: int, config: PricingConfig) -> PriceBreakdown:
    subtotal = _money(subtotal, "subtotal")
    # reserved for promotions; stays in the breakdown
    discount = 0
    threshold = config.free_delivery_threshold
    is_free_delivery = threshold > 0 and subtotal >= threshold
    delivery_fee = 0 if is_free_delivery else config.delivery_fee
    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        delivery_fee=delivery_fee,
        is_free_delivery=is_free_delivery,
        total=subtotal - discount + delivery_fee,
    )


def meets_minimum(subtotal: int, config: PricingConfig) -> MinimumCheck:
    minimum = config.minimum_order_amount
    if subtotal < minimum:
        return PricingInvalid(
            message=(
                f"Minimal pemesanan {format_rupiah(minimum)}. "
                f"Tambah {format_rupiah(minimum - subtotal)} lagi ke keranjang untuk melanjutkan."
            )
        )
    return PricingValid()


def delivery_fee_text(subtotal: int, config: PricingConfig) -> str:
    breakdown = calculate(subtotal, config)
    if breakdown.is_free_delivery:
        return "Gratis ongkir"
    if breakdown.delivery_fee == 0:
        return "Tidak ada ongkir"
    return f"Ongkir: {format_rupiah(breakdown.delivery_fee)}"


def free_delivery_progress_text(subtotal: int, config: PricingConfig) -> str | None:
    threshold = config.free_delivery_threshold
    if threshold == 0 or subtotal >= threshold:
        return None
    return f"Tambah {format_rupiah(threshold - subtotal)} lagi untuk gratis ongkir"
