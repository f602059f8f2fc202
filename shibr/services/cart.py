"""
Storefront shopping cart.

A cart belongs to one branch and holds one line per product. Every mutation
takes the live shelf stock for the touched product, stores it as the line's
max_quantity and clamps the quantity into [0, max_quantity]. A line whose
quantity ends at 0 is removed.
"""
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Optional

from shibr.core.exceptions import BusinessRuleError, NotFoundError
from shibr.services.pricing import Totals, calculate_totals, sum_lines


@dataclass
class CartItem:
    product_id: int
    name: str
    price: float
    quantity: int
    max_quantity: int

    @property
    def subtotal(self) -> float:
        return float(sum_lines([(self.price, self.quantity)]))


@dataclass
class Cart:
    branch_id: int
    items: dict[int, CartItem] = field(default_factory=dict)

    def add_item(
        self,
        product_id: int,
        name: str,
        price: float,
        stock: int,
        quantity: int = 1,
    ) -> CartItem:
        """Add units of a product, merging with an existing line."""
        if quantity <= 0:
            raise BusinessRuleError("Quantity must be at least 1")
        if stock <= 0:
            raise BusinessRuleError(f"{name} is out of stock")

        existing = self.items.get(product_id)
        current = existing.quantity if existing else 0
        item = CartItem(
            product_id=product_id,
            name=name,
            price=price,
            quantity=min(current + quantity, stock),
            max_quantity=stock,
        )
        self.items[product_id] = item
        return item

    def update_quantity(self, product_id: int, quantity: int, stock: int) -> Optional[CartItem]:
        """Set a line's quantity. Returns None when the line was removed."""
        item = self.items.get(product_id)
        if item is None:
            raise NotFoundError("Product is not in the cart")

        item.max_quantity = max(stock, 0)
        item.quantity = max(0, min(quantity, item.max_quantity))
        if item.quantity == 0:
            del self.items[product_id]
            return None
        return item

    def remove_item(self, product_id: int) -> None:
        self.items.pop(product_id, None)

    def clear(self) -> None:
        self.items.clear()

    def refresh(self, stock: dict[int, int], prices: Optional[dict[int, float]] = None) -> list[int]:
        """
        Re-clamp every line against live stock.

        Products missing from `stock` count as 0. Returns the ids of the lines
        that were dropped.
        """
        dropped = []
        for product_id in list(self.items):
            item = self.items[product_id]
            if prices and product_id in prices:
                item.price = prices[product_id]
            if self.update_quantity(product_id, item.quantity, stock.get(product_id, 0)) is None:
                dropped.append(product_id)
        return dropped

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items.values())

    @property
    def subtotal(self) -> Decimal:
        return sum_lines((item.price, item.quantity) for item in self.items.values())

    def totals(self) -> Totals:
        return calculate_totals(self.subtotal)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict:
        return {
            "branch_id": self.branch_id,
            "items": [asdict(item) for item in self.items.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        cart = cls(branch_id=data["branch_id"])
        for raw in data.get("items", []):
            item = CartItem(**raw)
            cart.items[item.product_id] = item
        return cart
