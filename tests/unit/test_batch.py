"""
Unit tests for batch cost updates.

Run with: pytest tests/unit/test_batch.py -v -m unit
"""

import asyncio

import httpx
import pytest

from odoo_cost_editor.batch import AffectedProduct, BatchUpdater, CostChange

from conftest import fault_xml

pytestmark = [pytest.mark.unit]


def product_change(product_id: int, cost: float, name: str = "") -> CostChange:
    return CostChange(
        entity_type="product",
        entity_id=product_id,
        entity_name=name or f"Product {product_id}",
        new_value=cost,
        current_value=1.0,
    )


class TestCostChange:

    def test_unsupported_entity_type(self):
        with pytest.raises(ValueError, match="Unsupported entity type"):
            CostChange(entity_type="supplier", entity_id=1, new_value=2.0)

    @pytest.mark.parametrize(
        "kwargs",
        [{"batch_size": 0}, {"concurrency": 0}, {"batch_delay": -1}],
    )
    def test_invalid_updater_settings(self, catalog, kwargs):
        with pytest.raises(ValueError):
            BatchUpdater(catalog, **kwargs)


class TestBatchUpdater:
    """Tests for BatchUpdater.run."""

    @pytest.mark.asyncio
    async def test_product_changes(self, catalog, stub_odoo):
        stub_odoo.on("product.template.write", True)
        updater = BatchUpdater(catalog, batch_size=2, batch_delay=0)

        report = await updater.run([product_change(i, 10.5) for i in (1, 2, 3)])

        assert report.ok
        assert report.summary.total == 3
        assert report.summary.succeeded == 3
        assert [r.entity_id for r in report.results] == [1, 2, 3]
        assert [p[5][0] for p in stub_odoo.calls_to("product.template.write")] == [[1], [2], [3]]

    @pytest.mark.asyncio
    async def test_dry_run_does_not_write(self, catalog, stub_odoo):
        updater = BatchUpdater(catalog, batch_delay=0)

        report = await updater.run([product_change(1, 10.5)], dry_run=True)

        assert report.ok
        assert report.results[0].dry_run is True
        assert report.summary.dry_run is True
        assert stub_odoo.calls == []

    @pytest.mark.asyncio
    async def test_logical_failure_is_reported_per_item(self, catalog, stub_odoo):
        stub_odoo.on("product.template.write", lambda params: params[5][0] != [2])
        updater = BatchUpdater(catalog, batch_delay=0)

        report = await updater.run([product_change(i, 4.0) for i in (1, 2, 3)])

        assert not report.ok
        assert report.summary.failed == 1
        failed = report.results[1]
        assert failed.success is False
        assert failed.error_code == "WRITE_REJECTED"
        assert report.results[2].success is True

    @pytest.mark.asyncio
    async def test_fault_is_reported_and_not_retried(self, catalog, stub_odoo):
        stub_odoo.on(
            "product.template.write",
            httpx.Response(200, text=fault_xml(1, "UserError: Cost is locked")),
        )
        updater = BatchUpdater(catalog, batch_delay=0)

        report = await updater.run([product_change(1, 4.0)])

        result = report.results[0]
        assert result.success is False
        assert result.error == "Cost is locked"
        assert result.error_code == "VALIDATION_ERROR"
        assert len(stub_odoo.calls_to("product.template.write")) == 1

    @pytest.mark.asyncio
    async def test_category_change_with_listed_products(self, catalog, stub_odoo):
        stub_odoo.on("product.template.write", True)
        change = CostChange(
            entity_type="category",
            entity_id=12,
            entity_name="Difusores",
            new_value=8.0,
            affected_products=(AffectedProduct(101, "Difusor A", 7.0), AffectedProduct(102, "Difusor B", 6.5)),
        )

        report = await BatchUpdater(catalog, batch_delay=0).run([change])

        assert [r.entity_id for r in report.results] == [101, 102]
        assert all(r.category_change == "Difusores" for r in report.results)
        assert report.results[0].current_value == 7.0
        assert stub_odoo.calls_to("product.template.search_read") == []

    @pytest.mark.asyncio
    async def test_category_change_expands_from_odoo(self, catalog, stub_odoo):
        stub_odoo.on(
            "product.template.search_read",
            [
                {"id": 201, "name": "Vela", "categ_id": [3, "Velas"], "standard_price": 1.5},
                {"id": 202, "name": "Vela XL", "categ_id": [3, "Velas"], "standard_price": 2.5},
            ],
        )
        stub_odoo.on("product.template.write", True)

        report = await BatchUpdater(catalog, batch_delay=0).run(
            [CostChange(entity_type="category", entity_id=3, entity_name="Velas", new_value=3.0)]
        )

        assert report.ok
        assert [r.entity_id for r in report.results] == [201, 202]
        domain = stub_odoo.calls_to("product.template.search_read")[0][5][0]
        assert ["categ_id", "=", 3] in domain

    @pytest.mark.asyncio
    async def test_category_change_without_products_is_reported(self, catalog, stub_odoo):
        stub_odoo.on("product.template.write", True)
        change = CostChange(
            entity_type="category",
            entity_id=12,
            entity_name="Difusores",
            new_value=8.0,
            affected_products=(),
        )

        report = await BatchUpdater(catalog, batch_delay=0).run([change, product_change(1, 2.0)])

        assert report.ok
        assert report.summary.total == 2
        empty = report.results[0]
        assert empty.entity_type == "category"
        assert empty.entity_id == 12
        assert empty.category_change == "Difusores"
        assert [p[5][0] for p in stub_odoo.calls_to("product.template.write")] == [[1]]

    @pytest.mark.asyncio
    async def test_category_expanding_to_no_products(self, catalog, stub_odoo):
        stub_odoo.on("product.template.search_read", [])

        report = await BatchUpdater(catalog, batch_delay=0).run(
            [CostChange(entity_type="category", entity_id=3, entity_name="Velas", new_value=3.0)]
        )

        assert [(r.entity_type, r.entity_id, r.success) for r in report.results] == [("category", 3, True)]
        assert stub_odoo.calls_to("product.template.write") == []

    @pytest.mark.asyncio
    async def test_category_expansion_failure(self, catalog, stub_odoo):
        stub_odoo.on(
            "product.template.search_read",
            httpx.Response(200, text=fault_xml(4, "AccessError: not allowed")),
        )

        report = await BatchUpdater(catalog, batch_delay=0).run(
            [CostChange(entity_type="category", entity_id=3, entity_name="Velas", new_value=3.0)]
        )

        assert report.summary.failed == 1
        assert report.results[0].entity_type == "category"
        assert report.results[0].error_code == "PERMISSION_DENIED"

    @pytest.mark.asyncio
    async def test_delay_between_batches_only(self, catalog, stub_odoo, monkeypatch):
        stub_odoo.on("product.template.write", True)
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)

        await BatchUpdater(catalog, batch_size=2, batch_delay=0.25).run(
            [product_change(i, 1.25) for i in range(1, 6)]
        )

        assert [s for s in sleeps if s] == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_concurrency_limit(self, catalog):
        in_flight = 0
        peak = 0

        class SlowResult:
            def __bool__(self):
                return True

        async def slow_update(product_id, cost):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return SlowResult()

        catalog.update_cost = slow_update

        report = await BatchUpdater(catalog, batch_size=6, batch_delay=0, concurrency=2).run(
            [product_change(i, 1.25) for i in range(1, 7)]
        )

        assert report.ok
        assert peak == 2
