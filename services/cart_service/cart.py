"""
The shopping cart as an explicit state container.

Derived totals are never patched in place: every mutation rebuilds them from
the item list, so ``total_items`` and ``total_price`` cannot drift from the
lines they summarize.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class CartProduct:
    """Snapshot of the listing a buyer put in the cart."""
    id: str
    name: str
    price: Decimal
    farmer_id: str
    quantity_unit: str = "kg"

    @classmethod
    def from_product(cls, product) -> "CartProduct":
        return cls(
            id=product.id,
            name=product.name,
            price=Decimal(product.price),
            farmer_id=product.user_id,
            quantity_unit=product.quantity_unit,
        )


@dataclass(frozen=True)
class CartLine:
    product: CartProduct
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.product.price * self.quantity


@dataclass
class Cart:
    items: list[CartLine] = field(default_factory=list)
    total_items: int = 0
    total_price: Decimal = Decimal("0")

    def __post_init__(self):
        self._recalculate()

    def _recalculate(self):
        self.total_items = sum(line.quantity for line in self.items)
        self.total_price = sum((line.subtotal for line in self.items), Decimal("0"))

    def _find(self, product_id: str) -> Optional[int]:
        for index, line in enumerate(self.items):
            if line.product.id == product_id:
                return index
        return None

    def add(self, product: CartProduct, quantity: int = 1) -> "Cart":
        if quantity < 1:
            raise ValueError("Quantity must be a positive integer greater than zero.")

        index = self._find(product.id)
        if index is None:
            self.items.append(CartLine(product=product, quantity=quantity))
        else:
            existing = self.items[index]
            self.items[index] = CartLine(product=existing.product, quantity=existing.quantity + quantity)
        self._recalculate()
        return self

    def remove(self, product_id: str) -> "Cart":
        self.items = [line for line in self.items if line.product.id != product_id]
        self._recalculate()
        return self

    def update_quantity(self, product_id: str, quantity: int) -> "Cart":
        # Anything below one unit means the buyer no longer wants the line
        if quantity < 1:
            return self.remove(product_id)

        self.items = [
            CartLine(product=line.product, quantity=quantity) if line.product.id == product_id else line
            for line in self.items
        ]
        self._recalculate()
        return self

    def clear(self) -> "Cart":
        self.items = []
        self._recalculate()
        return self

    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict:
        """Persisted cart layout: {items: [{product, quantity}], totalItems, totalPrice}."""
        return {
            "items": [
                {
                    "product": {
                        "id": line.product.id,
                        "name": line.product.name,
                        "price": str(line.product.price),
                        "farmer_id": line.product.farmer_id,
                        "quantity_unit": line.product.quantity_unit,
                    },
                    "quantity": line.quantity,
                }
                for line in self.items
            ],
            "totalItems": self.total_items,
            "totalPrice": str(self.total_price),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        # Stored totals are ignored and recomputed from the lines
        lines = [
            CartLine(
                product=CartProduct(
                    id=item["product"]["id"],
                    name=item["product"]["name"],
                    price=Decimal(str(item["product"]["price"])),
                    farmer_id=item["product"]["farmer_id"],
                    quantity_unit=item["product"].get("quantity_unit", "kg"),
                ),
                quantity=int(item["quantity"]),
            )
            for item in data.get("items", [])
        ]
        return cls(items=lines)
