"""
Batch Cost Updates

Applies a list of pending cost changes to Odoo.

A product change writes standard_price on one product template. A
category change writes the same cost on every product of the category,
either the products listed on the change or, when none are listed, the
ones currently in the category.

Batch size, delay between batches and items in flight per batch are
explicit settings. Failed items are reported and never retried.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from .catalog import ProductCatalog
from .odoo.exceptions import OdooError

logger = logging.getLogger(__name__)

EntityType = Literal["product", "category"]
ENTITY_TYPES = ("product", "category")


@dataclass(frozen=True)
class AffectedProduct:
    """Product touched by a category change."""

    id: int
    name: str = ""
    current_cost: float | None = None


@dataclass(frozen=True)
class CostChange:
    """A pending change of standard_price."""

    entity_type: EntityType
    entity_id: int
    new_value: float
    entity_name: str = ""
    current_value: float | None = None
    affected_products: tuple[AffectedProduct, ...] | None = None

    def __post_init__(self):
        if self.entity_type not in ENTITY_TYPES:
            raise ValueError(f"Unsupported entity type: {self.entity_type}")


@dataclass(frozen=True)
class CostUpdateResult:
    """Outcome for one product write."""

    entity_type: EntityType
    entity_id: int
    entity_name: str
    new_value: float
    current_value: float | None
    success: bool
    dry_run: bool
    duration_ms: float
    error: str | None = None
    error_code: str | None = None
    category_change: str | None = None


@dataclass(frozen=True)
class BatchSummary:
    total: int
    succeeded: int
    failed: int
    dry_run: bool
    started_at: datetime
    finished_at: datetime


@dataclass
class BatchReport:
    results: list[CostUpdateResult] = field(default_factory=list)
    summary: BatchSummary | None = None

    @property
    def ok(self) -> bool:
        return self.summary is not None and self.summary.failed == 0


@dataclass(frozen=True)
class _WorkItem:
    product_id: int
    product_name: str
    new_value: float
    current_value: float | None
    entity_type: EntityType
    category_change: str | None = None


class BatchUpdater:
    """Apply cost changes in throttled batches."""

    def __init__(
        self,
        catalog: ProductCatalog,
        *,
        batch_size: int = 10,
        batch_delay: float = 0.1,
        concurrency: int = 1,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if batch_delay < 0:
            raise ValueError("batch_delay cannot be negative")

        self.catalog = catalog
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.concurrency = concurrency

    async def _expand(self, change: CostChange, dry_run: bool) -> list[_WorkItem] | CostUpdateResult:
        """Turn a change into product work items, or a failed result."""
        if change.entity_type == "product":
            return [
                _WorkItem(
                    product_id=change.entity_id,
                    product_name=change.entity_name,
                    new_value=change.new_value,
                    current_value=change.current_value,
                    entity_type="product",
                )
            ]

        products = change.affected_products
        if products is None:
            try:
                found = await self.catalog.get_category_products(change.entity_id)
            except OdooError as e:
                logger.warning(f"Could not list products of category {change.entity_name} ({change.entity_id}): {e}")
                return CostUpdateResult(
                    entity_type="category",
                    entity_id=change.entity_id,
                    entity_name=change.entity_name,
                    new_value=change.new_value,
                    current_value=change.current_value,
                    success=False,
                    dry_run=dry_run,
                    duration_ms=0.0,
                    error=e.message,
                    error_code=e.error_code,
                )
            products = tuple(AffectedProduct(p.id, p.name, p.standard_price) for p in found)

        if not products:
            logger.info(f"Category {change.entity_name} ({change.entity_id}) has no products, nothing to write")
            return CostUpdateResult(
                entity_type="category",
                entity_id=change.entity_id,
                entity_name=change.entity_name,
                new_value=change.new_value,
                current_value=change.current_value,
                success=True,
                dry_run=dry_run,
                duration_ms=0.0,
                category_change=change.entity_name or str(change.entity_id),
            )

        logger.info(
            f"Category {change.entity_name} ({change.entity_id}) -> {change.new_value}, "
            f"affecting {len(products)} products"
        )
        return [
            _WorkItem(
                product_id=product.id,
                product_name=product.name,
                new_value=change.new_value,
                current_value=product.current_cost,
                entity_type="product",
                category_change=change.entity_name or str(change.entity_id),
            )
            for product in products
        ]

    async def _apply(self, item: _WorkItem, dry_run: bool, semaphore: asyncio.Semaphore) -> CostUpdateResult:
        async with semaphore:
            started = time.monotonic()
            error = None
            error_code = None

            if not dry_run:
                try:
                    result = await self.catalog.update_cost(item.product_id, item.new_value)
                    if not result:
                        error = f"Odoo update returned false for product {item.product_name} ({item.product_id})"
                        error_code = "WRITE_REJECTED"
                except OdooError as e:
                    error = e.message
                    error_code = e.error_code

            duration_ms = (time.monotonic() - started) * 1000
            prefix = "[DRY RUN] " if dry_run else ""
            if error:
                logger.warning(f"{prefix}Failed to update {item.product_name} ({item.product_id}): {error}")
            else:
                logger.info(
                    f"{prefix}Updated {item.product_name} ({item.product_id}): "
                    f"{item.current_value} -> {item.new_value}"
                )

            return CostUpdateResult(
                entity_type=item.entity_type,
                entity_id=item.product_id,
                entity_name=item.product_name,
                new_value=item.new_value,
                current_value=item.current_value,
                success=error is None,
                dry_run=dry_run,
                duration_ms=duration_ms,
                error=error,
                error_code=error_code,
                category_change=item.category_change,
            )

    async def run(self, changes: list[CostChange], *, dry_run: bool = False) -> BatchReport:
        """Apply all changes and return per-product results plus a summary."""
        started_at = datetime.now(timezone.utc)
        report = BatchReport()

        work: list[_WorkItem] = []
        for change in changes:
            expanded = await self._expand(change, dry_run)
            if isinstance(expanded, CostUpdateResult):
                report.results.append(expanded)
            else:
                work.extend(expanded)

        semaphore = asyncio.Semaphore(self.concurrency)
        batch_count = (len(work) + self.batch_size - 1) // self.batch_size
        logger.info(f"Starting batch update: {len(work)} writes in {batch_count} batches (dry_run={dry_run})")

        for index in range(0, len(work), self.batch_size):
            batch = work[index:index + self.batch_size]
            logger.info(f"Processing batch {index // self.batch_size + 1}/{batch_count}")
            report.results.extend(
                await asyncio.gather(*(self._apply(item, dry_run, semaphore) for item in batch))
            )
            if index + self.batch_size < len(work) and self.batch_delay:
                await asyncio.sleep(self.batch_delay)

        failed = sum(1 for result in report.results if not result.success)
        report.summary = BatchSummary(
            total=len(report.results),
            succeeded=len(report.results) - failed,
            failed=failed,
            dry_run=dry_run,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        logger.info(f"Batch update completed: {report.summary.succeeded} ok, {failed} failed")
        return report
