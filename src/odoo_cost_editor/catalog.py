"""
Product Catalog

Categories and products read from Odoo, and cost updates written back.

Odoo returns many2one fields as [id, "Display Name"], or False when unset.
Records are flattened into <field>_id / <field>_name pairs here, never in
the codec.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from .odoo.client import OdooClient, WriteResult

logger = logging.getLogger(__name__)

CATEGORY_MODEL = "product.category"
PRODUCT_MODEL = "product.template"

CATEGORY_FIELDS = ["id", "name", "parent_id", "complete_name"]
PRODUCT_FIELDS = ["id", "name", "default_code", "categ_id", "standard_price", "active"]

# Storable, active products only
PRODUCT_BASE_DOMAIN = [["active", "=", True], ["type", "=", "product"]]


def split_many2one(value: Any) -> tuple[int | None, str | None]:
    """
    Split a many2one value into (id, name).

    [7, "Aceites esenciales"] -> (7, "Aceites esenciales")
    False -> (None, None)
    """
    if isinstance(value, (list, tuple)) and len(value) == 2:
        record_id, name = value
        if isinstance(record_id, int) and not isinstance(record_id, bool):
            return record_id, name if isinstance(name, str) else str(name)
    return None, None


def _char(value: Any) -> str | None:
    # Odoo sends False for empty char fields
    return value if isinstance(value, str) and value else None


@dataclass(frozen=True)
class Category:
    """product.category projection"""

    id: int
    name: str
    parent_id: int | None = None
    parent_name: str | None = None
    complete_name: str | None = None

    @classmethod
    def from_record(cls, record: dict) -> "Category":
        parent_id, parent_name = split_many2one(record.get("parent_id"))
        return cls(
            id=record["id"],
            name=_char(record.get("name")) or "",
            parent_id=parent_id,
            parent_name=parent_name,
            complete_name=_char(record.get("complete_name")),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Product:
    """product.template projection"""

    id: int
    name: str
    default_code: str | None = None
    categ_id: int | None = None
    categ_name: str | None = None
    standard_price: float = 0.0
    active: bool = True

    @classmethod
    def from_record(cls, record: dict) -> "Product":
        categ_id, categ_name = split_many2one(record.get("categ_id"))
        price = record.get("standard_price")
        return cls(
            id=record["id"],
            name=_char(record.get("name")) or "",
            default_code=_char(record.get("default_code")),
            categ_id=categ_id,
            categ_name=categ_name,
            standard_price=float(price) if isinstance(price, (int, float)) and not isinstance(price, bool) else 0.0,
            active=record.get("active", True) is not False,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CategoryPriceAnalysis:
    """
    How consistent the costs inside one category are.

    price_consistency is one of no_products, all_zero, uniform or mixed;
    suggested_action is set_base_cost, auto_fill or manual_decision
    (None when the category is empty).
    """

    category_id: int
    has_products: bool
    product_count: int
    price_consistency: str
    message: str
    unique_prices: list[float] = field(default_factory=list)
    uniform_price: float | None = None
    suggested_action: str | None = None

    @classmethod
    def from_products(cls, category_id: int, products: list[Product]) -> "CategoryPriceAnalysis":
        if not products:
            return cls(
                category_id=category_id,
                has_products=False,
                product_count=0,
                price_consistency="no_products",
                message="No products in this category",
            )

        # Zero cost means "not set yet", not a price
        prices = [p.standard_price for p in products if p.standard_price > 0]
        unique_prices = sorted(set(prices))

        if not prices:
            return cls(
                category_id=category_id,
                has_products=True,
                product_count=len(products),
                price_consistency="all_zero",
                message="All products have a zero cost",
                unique_prices=[0.0],
                suggested_action="set_base_cost",
            )

        if len(unique_prices) == 1:
            return cls(
                category_id=category_id,
                has_products=True,
                product_count=len(products),
                price_consistency="uniform",
                message=f"All products share the same cost: {unique_prices[0]:.2f}",
                unique_prices=unique_prices,
                uniform_price=unique_prices[0],
                suggested_action="auto_fill",
            )

        return cls(
            category_id=category_id,
            has_products=True,
            product_count=len(products),
            price_consistency="mixed",
            message=(
                f"Mixed costs: {unique_prices[0]:.2f} - {unique_prices[-1]:.2f} "
                f"({len(unique_prices)} unique costs)"
            ),
            unique_prices=unique_prices,
            suggested_action="manual_decision",
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DashboardStats:
    total_products: int
    total_categories: int
    zero_cost_count: int
    low_cost_products: list[Product] = field(default_factory=list)
    high_cost_products: list[Product] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_products": self.total_products,
            "total_categories": self.total_categories,
            "zero_cost_count": self.zero_cost_count,
            "low_cost_products": [_cost_entry(p) for p in self.low_cost_products],
            "high_cost_products": [_cost_entry(p) for p in self.high_cost_products],
        }


def _cost_entry(product: Product) -> dict:
    return {"id": product.id, "name": product.name, "cost": product.standard_price}


class ProductCatalog:
    """Category and product access on top of OdooClient."""

    def __init__(self, client: OdooClient):
        self.client = client

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @staticmethod
    def _category_domain(search: str | None = None) -> list:
        # product.category has no active field
        return [["name", "ilike", search]] if search else []

    async def get_categories(
        self,
        *,
        limit: int = 50,
        offset: int = 0,
        search: str | None = None,
    ) -> list[Category]:
        records = await self.client.search_read(
            CATEGORY_MODEL,
            self._category_domain(search),
            CATEGORY_FIELDS,
            limit=limit,
            offset=offset,
            order="name asc",
        )
        return [Category.from_record(record) for record in records]

    async def count_categories(self, search: str | None = None) -> int:
        return await self.client.search_count(CATEGORY_MODEL, self._category_domain(search))

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    @staticmethod
    def _product_domain(
        domain: list | None = None,
        category_id: int | None = None,
        search: str | None = None,
    ) -> list:
        full_domain = [list(term) for term in PRODUCT_BASE_DOMAIN]
        if category_id is not None:
            full_domain.append(["categ_id", "=", category_id])
        if search:
            full_domain += ["|", ["name", "ilike", search], ["default_code", "ilike", search]]
        if domain:
            full_domain += list(domain)
        return full_domain

    async def get_products(
        self,
        *,
        limit: int = 10,
        offset: int = 0,
        domain: list | None = None,
        category_id: int | None = None,
        search: str | None = None,
        order: str = "name asc",
    ) -> list[Product]:
        records = await self.client.search_read(
            PRODUCT_MODEL,
            self._product_domain(domain, category_id, search),
            PRODUCT_FIELDS,
            limit=limit,
            offset=offset,
            order=order,
        )
        return [Product.from_record(record) for record in records]

    async def count_products(
        self,
        *,
        domain: list | None = None,
        category_id: int | None = None,
        search: str | None = None,
    ) -> int:
        return await self.client.search_count(
            PRODUCT_MODEL,
            self._product_domain(domain, category_id, search),
        )

    async def get_category_products(self, category_id: int, *, page_size: int = 200) -> list[Product]:
        """All products of one category, fetched page by page."""
        products: list[Product] = []
        offset = 0
        while True:
            page = await self.get_products(
                limit=page_size, offset=offset, category_id=category_id, order="id asc"
            )
            products.extend(page)
            if len(page) < page_size:
                break
            offset += page_size

        logger.info(f"Category {category_id} has {len(products)} products")
        return products

    async def count_category_products(self, category_id: int) -> int:
        return await self.count_products(category_id=category_id)

    async def product_counts(self, category_ids: list[int]) -> dict[int, int]:
        """Storable product count per category, one search_count each."""
        counts = {}
        for category_id in category_ids:
            counts[category_id] = await self.count_category_products(category_id)
        return counts

    # -------------------------------------------------------------------------
    # Cost analysis
    # -------------------------------------------------------------------------

    async def analyze_category_prices(self, category_id: int) -> CategoryPriceAnalysis:
        """Classify the costs of a category's products."""
        products = await self.get_category_products(category_id)
        analysis = CategoryPriceAnalysis.from_products(category_id, products)
        logger.info(
            f"Category {category_id}: {analysis.price_consistency}, "
            f"{len(analysis.unique_prices)} unique costs in {analysis.product_count} products"
        )
        return analysis

    async def get_dashboard_stats(self, *, top: int = 10) -> DashboardStats:
        """Catalog totals plus the cheapest and most expensive products."""
        total_products = await self.count_products()
        total_categories = await self.count_categories()
        zero_cost_count = await self.count_products(domain=[["standard_price", "=", 0]])
        low_cost_products = await self.get_products(
            limit=top,
            domain=[["standard_price", ">", 0]],
            order="standard_price asc",
        )
        high_cost_products = await self.get_products(limit=top, order="standard_price desc")

        return DashboardStats(
            total_products=total_products,
            total_categories=total_categories,
            zero_cost_count=zero_cost_count,
            low_cost_products=low_cost_products,
            high_cost_products=high_cost_products,
        )

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    async def update_product(self, product_id: int, values: dict) -> WriteResult:
        return await self.client.write(PRODUCT_MODEL, [product_id], values)

    async def update_cost(self, product_id: int, cost: float) -> WriteResult:
        """Set standard_price on one product template."""
        return await self.update_product(product_id, {"standard_price": cost})

    async def change_standard_price(
        self,
        product_ids: list[int],
        new_cost: float,
        company_id: int,
    ) -> Any:
        """
        Change the cost through Odoo's accounting path.

        Unlike update_cost this lets Odoo post the stock valuation
        entries for the given company.
        """
        return await self.client.call(
            PRODUCT_MODEL,
            "change_standard_price",
            [product_ids, new_cost],
            context={"company_id": company_id},
        )
