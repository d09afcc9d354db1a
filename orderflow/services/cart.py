from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from orderflow.services.pricing import sum_line_totals


@dataclass(frozen=True)
class CartLine:
    item_id: str
    name: str
    unit_price: int
    qty: int = 1
    notes: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.unit_price, bool) or not isinstance(self.unit_price, int) or self.unit_price < 0:
            raise ValueError("unit_price must be a non-negative integer")
        if isinstance(self.qty, bool) or not isinstance(self.qty, int) or self.qty < 1:
            raise ValueError("qty must be an integer >= 1")

    @property
    def line_total(self) -> int:
        return self.unit_price * self.qty

    @property
    def key(self) -> tuple[str, str]:
        return (str(self.item_id), (self.notes or "").strip())

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "CartLine":
        notes = raw.get("notes")
        return cls(
            item_id=str(raw.get("item_id", raw.get("menu_item_id", ""))),
            name=str(raw.get("name") or "").strip(),
            unit_price=raw.get("unit_price", raw.get("price")),
            qty=raw.get("qty", raw.get("quantity", 1)),
            notes=str(notes).strip() if notes else None,
        )


@dataclass
class Cart:
    """Session cart. Lines with the same item and notes are merged."""

    lines: list[CartLine] = field(default_factory=list)

    @classmethod
    def from_lines(cls, lines: Iterable[CartLine]) -> "Cart":
        cart = cls()
        for line in lines:
            cart.add(line)
        return cart

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.qty for line in self.lines)

    def add(self, line: CartLine) -> CartLine:
        for index, existing in enumerate(self.lines):
            if existing.key == line.key:
                merged = replace(existing, qty=existing.qty + line.qty)
                self.lines[index] = merged
                return merged
        self.lines.append(line)
        return line

    def remove(self, item_id: str, notes: str | None = None) -> None:
        key = (str(item_id), (notes or "").strip())
        self.lines = [line for line in self.lines if line.key != key]

    def update_quantity(self, item_id: str, qty: int, notes: str | None = None) -> None:
        if qty <= 0:
            self.remove(item_id, notes)
            return
        key = (str(item_id), (notes or "").strip())
        self.lines = [replace(line, qty=qty) if line.key == key else line for line in self.lines]

    def clear(self) -> None:
        self.lines = []

    def subtotal(self) -> int:
        return sum_line_totals(self.lines)
