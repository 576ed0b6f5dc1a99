# checkout/domain/cart.py
import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Dict, Any

from checkout.domain.errors import CurrencyMismatch, InvalidCartState, InvalidQuantity
from checkout.domain.pricing import compute_breakdown, to_decimal
from checkout.domain.schemas import CartTotals, PriceBreakdown
from checkout.utils.settings import DEFAULT_CURRENCY


@dataclass(frozen=True)
class LineItem:
    line_id: int
    product_id: int
    unit_price: Decimal
    quantity: int
    currency: str
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartAggregate:
    """
    Line items of one cart session.

    Items are keyed by a cart-assigned line id, not by product id. Totals are
    never stored, every read recomputes them from the current lines.
    """

    def __init__(self, currency: str | None = None):
        self.default_currency = (currency or DEFAULT_CURRENCY).upper()
        self._lines: List[LineItem] = []
        self._next_line_id = 1

    @classmethod
    def from_lines(cls, lines: Iterable[LineItem], currency: str | None = None) -> "CartAggregate":
        cart = cls(currency)
        for line in lines:
            if line.quantity < 1:
                continue
            cart._lines.append(line)
            cart._next_line_id = max(cart._next_line_id, line.line_id + 1)
        return cart

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def currency(self) -> str:
        if self._lines:
            return self._lines[0].currency
        return self.default_currency

    def get(self, line_id: int) -> LineItem | None:
        return next((l for l in self._lines if l.line_id == line_id), None)

    def find_by_product(self, product_id: int) -> LineItem | None:
        return next((l for l in self._lines if l.product_id == product_id), None)

    def totals(self) -> CartTotals:
        return CartTotals(
            total_items=sum(l.quantity for l in self._lines),
            total_price=sum((l.line_total for l in self._lines), Decimal("0.00")),
        )

    def subtotal(self) -> Decimal:
        return self.totals().total_price

    def breakdown(self) -> PriceBreakdown:
        return compute_breakdown(self.subtotal())

    def fingerprint(self) -> str:
        """Changes whenever anything that affects the charged amount changes."""
        digest = hashlib.sha256()
        for l in sorted(self._lines, key=lambda l: l.line_id):
            digest.update(f"{l.product_id}|{l.unit_price:.2f}|{l.quantity}|{l.currency};".encode())
        return digest.hexdigest()

    def to_payload(self) -> List[Dict[str, Any]]:
        return [{"productId": l.product_id, "quantity": l.quantity} for l in self._lines]

    # =====================================================
    # COMMANDS
    # =====================================================
    def add_item(
        self,
        product_id: int,
        unit_price,
        quantity: int = 1,
        currency: str | None = None,
    ) -> LineItem:
        if quantity < 1:
            raise InvalidQuantity(f"Quantity must be at least 1, got {quantity}")

        unit_price = to_decimal(unit_price)
        if unit_price < 0:
            raise InvalidCartState(f"Unit price cannot be negative: {unit_price}")

        currency = (currency or self.currency).upper()
        if self._lines and currency != self.currency:
            raise CurrencyMismatch(
                f"Cart is priced in {self.currency}, cannot add an item in {currency}"
            )

        existing = self.find_by_product(product_id)
        if existing:
            #merge - latest catalog price wins
            merged = replace(existing, quantity=existing.quantity + quantity, unit_price=unit_price)
            self._replace(merged)
            return merged

        line = LineItem(
            line_id=self._next_line_id,
            product_id=product_id,
            unit_price=unit_price,
            quantity=quantity,
            currency=currency,
        )
        self._next_line_id += 1
        self._lines.append(line)
        return line

    def update_quantity(self, line_id: int, quantity: int) -> LineItem | None:
        line = self.get(line_id)
        if not line:
            return None

        if quantity <= 0:
            self.remove_item(line_id)
            return None

        updated = replace(line, quantity=quantity)
        self._replace(updated)
        return updated

    def remove_item(self, line_id: int) -> None:
        self._lines = [l for l in self._lines if l.line_id != line_id]

    def remove_paid(self, items: Iterable[Dict[str, Any]]) -> None:
        """Takes paid quantities off the cart, lines added after the intent stay."""
        for paid in items:
            line = self.find_by_product(paid["productId"])
            if line:
                self.update_quantity(line.line_id, line.quantity - paid["quantity"])

    def clear(self) -> None:
        self._lines = []

    def _replace(self, line: LineItem) -> None:
        self._lines = [line if l.line_id == line.line_id else l for l in self._lines]

    def __len__(self) -> int:
        return len(self._lines)

    def __repr__(self) -> str:
        totals = self.totals()
        return f"<CartAggregate lines={len(self._lines)} items={totals.total_items} total={totals.total_price} {self.currency}>"
