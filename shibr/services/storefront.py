"""Live shelf stock for a branch storefront."""
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.exceptions import NotFoundError
from shibr.models.product import Product
from shibr.models.rental import RentalProduct, RentalRequest, RentalStatus
from shibr.models.shelf import Branch, Shelf


@dataclass
class StockLine:
    """A product on sale at a branch, possibly spread over several shelves."""
    product_id: int
    name: str
    price: float
    description: str | None = None
    category: str | None = None
    # (rental_product_id, quantity) in the order stock is consumed
    sources: list[tuple[int, int]] = field(default_factory=list)

    @property
    def quantity(self) -> int:
        return sum(qty for _, qty in self.sources)


async def get_active_branch(db: AsyncSession, branch_id: int) -> Branch:
    branch = await db.get(Branch, branch_id)
    if branch is None or not branch.is_active:
        raise NotFoundError("Store not found or inactive")
    return branch


async def get_branch_stock(db: AsyncSession, branch_id: int) -> dict[int, StockLine]:
    """Products on the branch's actively rented shelves, keyed by product id."""
    query = (
        select(RentalProduct, Product)
        .join(RentalRequest, RentalProduct.rental_request_id == RentalRequest.id)
        .join(Shelf, RentalRequest.shelf_id == Shelf.id)
        .join(Product, RentalProduct.product_id == Product.id)
        .where(
            Shelf.branch_id == branch_id,
            RentalRequest.status == RentalStatus.ACTIVE,
            Product.is_active.is_(True),
        )
        .order_by(RentalProduct.id)
    )
    result = await db.execute(query)

    stock: dict[int, StockLine] = {}
    for rental_product, product in result.all():
        line = stock.get(product.id)
        if line is None:
            line = StockLine(
                product_id=product.id,
                name=product.name,
                price=product.price,
                description=product.description,
                category=product.category,
            )
            stock[product.id] = line
        line.sources.append((rental_product.id, rental_product.quantity))
    return stock


def stock_levels(stock: dict[int, StockLine]) -> dict[int, int]:
    return {product_id: line.quantity for product_id, line in stock.items()}


def stock_prices(stock: dict[int, StockLine]) -> dict[int, float]:
    return {product_id: line.price for product_id, line in stock.items()}
