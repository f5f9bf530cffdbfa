"""
HTTP API for the Odoo cost editor

Exposes the product catalog and batch cost updates as JSON endpoints.
One OdooClient is created at startup and closed on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .batch import AffectedProduct, BatchUpdater, CostChange
from .catalog import ProductCatalog
from .config import Settings
from .odoo.client import OdooClient
from .odoo.exceptions import (
    OdooConfigurationError,
    OdooEncodeError,
    OdooError,
    OdooTimeoutError,
)

logger = logging.getLogger(__name__)

# Global state
settings = Settings()
odoo_client: OdooClient | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global odoo_client

    odoo_client = OdooClient.from_settings(settings)
    logger.info(f"Odoo client configured for {odoo_client.url} (db={odoo_client.db})")
    logger.info(f"HTTP server started on {settings.http_host}:{settings.http_port}")

    yield

    if odoo_client:
        await odoo_client.close()
        odoo_client = None


app = FastAPI(
    title="Odoo Cost Editor",
    description="Review and bulk-edit product costs stored in Odoo",
    version="0.1.0",
    lifespan=lifespan,
)


def get_odoo_client() -> OdooClient:
    if not odoo_client:
        raise HTTPException(status_code=503, detail="Odoo client not initialized")
    return odoo_client


def get_catalog(client: OdooClient = Depends(get_odoo_client)) -> ProductCatalog:
    return ProductCatalog(client)


def _status_for(error: OdooError) -> int:
    if isinstance(error, OdooConfigurationError):
        return 500
    if isinstance(error, OdooEncodeError):
        return 400
    if isinstance(error, OdooTimeoutError):
        return 504
    return 502


@app.exception_handler(OdooError)
async def odoo_error_handler(request: Request, exc: OdooError):
    """Render Odoo failures as JSON error bodies."""
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=_status_for(exc), content=exc.to_response())


# =============================================================================
# Request Models
# =============================================================================


class UpdateCostRequest(BaseModel):
    product_id: int = Field(gt=0)
    cost: float = Field(ge=0)


class AffectedProductModel(BaseModel):
    id: int
    name: str = ""
    current_cost: float | None = None


class CostChangeModel(BaseModel):
    entity_type: str = Field(pattern="^(product|category)$")
    entity_id: int = Field(gt=0)
    entity_name: str = ""
    new_value: float = Field(ge=0)
    current_value: float | None = None
    affected_products: list[AffectedProductModel] | None = None

    def to_change(self) -> CostChange:
        affected = None
        if self.affected_products is not None:
            affected = tuple(AffectedProduct(**p.model_dump()) for p in self.affected_products)
        return CostChange(
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            entity_name=self.entity_name,
            new_value=self.new_value,
            current_value=self.current_value,
            affected_products=affected,
        )


class BatchUpdateRequest(BaseModel):
    changes: list[CostChangeModel]
    dry_run: bool = False


class AnalyzeCategoryRequest(BaseModel):
    category_id: int = Field(gt=0)


# =============================================================================
# Endpoints
# =============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "odoo-cost-editor"}


@app.get("/api/odoo/status")
async def odoo_status(client: OdooClient = Depends(get_odoo_client)):
    """Check that Odoo accepts the configured credentials."""
    return asdict(await client.check_connection())


@app.get("/api/odoo/categories")
async def list_categories(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    search: str | None = None,
    catalog: ProductCatalog = Depends(get_catalog),
):
    categories = await catalog.get_categories(limit=limit, offset=offset, search=search)
    total = await catalog.count_categories(search=search)
    counts = await catalog.product_counts([c.id for c in categories])
    return {
        "categories": [{**c.to_dict(), "products_count": counts[c.id]} for c in categories],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@app.get("/api/odoo/products")
async def list_products(
    limit: int = Query(10, ge=1, le=500),
    offset: int = Query(0, ge=0),
    category_id: int | None = None,
    search: str | None = None,
    catalog: ProductCatalog = Depends(get_catalog),
):
    products = await catalog.get_products(
        limit=limit, offset=offset, category_id=category_id, search=search
    )
    total = await catalog.count_products(category_id=category_id, search=search)
    return {
        "products": [p.to_dict() for p in products],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@app.post("/api/analyze-category-prices")
async def analyze_category_prices(
    body: AnalyzeCategoryRequest,
    catalog: ProductCatalog = Depends(get_catalog),
):
    analysis = await catalog.analyze_category_prices(body.category_id)
    return {"success": True, "analysis": analysis.to_dict()}


@app.get("/api/dashboard/stats")
async def dashboard_stats(catalog: ProductCatalog = Depends(get_catalog)):
    """Totals and cost extremes for the dashboard."""
    stats = await catalog.get_dashboard_stats()
    return {"success": True, "stats": stats.to_dict()}


@app.post("/api/odoo/products/update-cost")
async def update_product_cost(
    body: UpdateCostRequest,
    catalog: ProductCatalog = Depends(get_catalog),
):
    logger.info(f"Updating cost of product {body.product_id} to {body.cost}")
    result = await catalog.update_cost(body.product_id, body.cost)
    if not result:
        return JSONResponse(
            status_code=502,
            content={
                "success": False,
                "error": f"Odoo did not update product {body.product_id}",
            },
        )
    return {"success": True, "product_id": body.product_id, "cost": body.cost}


@app.post("/api/batch-update")
async def batch_update(
    body: BatchUpdateRequest,
    catalog: ProductCatalog = Depends(get_catalog),
):
    if not body.changes:
        return {"success": True, "message": "No changes to process", "results": []}

    updater = BatchUpdater(
        catalog,
        batch_size=settings.batch_size,
        batch_delay=settings.batch_delay,
        concurrency=settings.batch_concurrency,
    )
    report = await updater.run([c.to_change() for c in body.changes], dry_run=body.dry_run)

    summary = asdict(report.summary)
    summary["started_at"] = report.summary.started_at.isoformat()
    summary["finished_at"] = report.summary.finished_at.isoformat()
    return {
        "success": report.ok,
        "summary": summary,
        "results": [asdict(r) for r in report.results],
    }


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run HTTP server."""
    import uvicorn

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "odoo_cost_editor.http_server:app",
        host=settings.http_host,
        port=settings.http_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
