"""
FastAPI application exposing the shipping optimizer.

This module provides a small, well-documented API surface built on top of the
packing engine in packopt_api.

Endpoints:
- GET /health
- GET / (service info / version)
- GET /box-types   -> the read-only box catalog
- POST /optimize   -> pack an order into the cheapest set of boxes

Notes:
- The API uses the Pydantic request/response models defined in `packopt_api.models`.
- The computational core remains pure-Python and uses dataclasses; the
  algorithm lives in `packopt_api.packing` and is driven by `packopt_api.service`.
- A failed optimization still answers with a flat per-item fallback quote.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__ as PACKAGE_VERSION
from .augmentor import StrategyAugmentor, build_augmentor
from .catalog import DEFAULT_CATALOG, BoxCatalog
from .config import Settings
from .errors import InfeasibleError, InvalidInputError, IterationLimitExceeded
from .models import (
    BoxTypeRead,
    OptimizeRequest,
    PackingPlanRead,
    boxtype_to_read,
    boxtypecreate_to_dataclass,
    plan_to_read,
)
from .normalizer import ItemResolver
from .service import fallback_quote, optimize, orderline_from_create

logger = logging.getLogger("packopt_api")
logging.basicConfig(level=logging.INFO)


def _fallback_body(
    request: Request, detail: str, partial_plan: Optional[Any] = None, **extra: Any
) -> Dict[str, Any]:
    settings: Settings = request.app.state.settings
    lines = getattr(request.state, "order_lines", [])
    body: Dict[str, Any] = {
        "detail": detail,
        "fallback": {
            "flatRatePerItem": settings.flat_rate_per_item,
            "individualShippingCost": fallback_quote(lines, settings),
        },
        "partialPlan": (
            plan_to_read(partial_plan).model_dump(by_alias=True)
            if partial_plan is not None
            else None
        ),
    }
    body.update(extra)
    return body


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[BoxCatalog] = None,
    augmentor: Optional[StrategyAugmentor] = None,
    resolver: Optional[ItemResolver] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Collaborators default to the environment settings, the default catalog,
    the augmentor those settings allow, and no item lookup.
    """
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="packopt_api - shipping box optimizer",
        version=PACKAGE_VERSION,
        description="Multi-box 3D packing of order items into the cheapest shipping boxes.",
    )
    app.state.settings = settings
    app.state.catalog = catalog or DEFAULT_CATALOG
    app.state.augmentor = augmentor or build_augmentor(settings)
    app.state.resolver = resolver

    # Allow cross-origin calls for common dev scenarios (adjust origins in production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Change to your allowed origins in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------
    # Health & info endpoints
    # ---------------------------

    @app.get("/", summary="Service info")
    async def root() -> Dict[str, Any]:
        """
        Basic service information and version.
        """
        return {"service": "packopt_api", "version": PACKAGE_VERSION}

    @app.get("/health", summary="Health check")
    async def health() -> Dict[str, str]:
        """
        Simple health check endpoint.
        """
        return {"status": "ok"}

    # ---------------------------
    # Catalog & optimization endpoints
    # ---------------------------

    @app.get(
        "/box-types",
        response_model=List[BoxTypeRead],
        summary="List the available box types",
    )
    async def box_types(request: Request) -> List[BoxTypeRead]:
        catalog: BoxCatalog = request.app.state.catalog
        return [boxtype_to_read(bt) for bt in catalog]

    @app.post(
        "/optimize",
        response_model=PackingPlanRead,
        summary="Pack an order into the cheapest set of boxes",
    )
    def optimize_order(body: OptimizeRequest, request: Request) -> PackingPlanRead:
        """
        Multi-item optimization endpoint.

        Request:
        - items: order lines (itemId, quantity, optional dimensions/weight/material)
        - destination: optional free-form destination info
        - boxTypes: optional catalog override for this request

        Response:
        - PackingPlanRead: boxes with their items, cost and utilization totals,
          plus savings against individual shipping.
        """
        state = request.app.state
        lines = [orderline_from_create(line) for line in body.items]
        request.state.order_lines = lines

        catalog = state.catalog
        if body.box_types is not None:
            catalog = BoxCatalog(boxtypecreate_to_dataclass(bt) for bt in body.box_types)

        logger.info(
            "optimize called: %d lines, %d box types",
            len(lines),
            len(catalog),
        )

        # CPU-bound; plain `def` so FastAPI runs it in the threadpool
        plan = optimize(
            lines,
            body.destination,
            catalog=catalog,
            resolver=state.resolver,
            augmentor=state.augmentor,
            settings=state.settings,
        )
        return plan_to_read(plan)

    # ---------------------------
    # Exception handlers
    # ---------------------------

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(InfeasibleError)
    async def infeasible_handler(request: Request, exc: InfeasibleError):
        logger.info("Infeasible order: %s", exc)
        return JSONResponse(
            status_code=422,
            content=_fallback_body(
                request, str(exc), exc.partial_plan, itemId=exc.item_id
            ),
        )

    @app.exception_handler(IterationLimitExceeded)
    async def iteration_limit_handler(request: Request, exc: IterationLimitExceeded):
        logger.error("Iteration limit hit: %s", exc)
        return JSONResponse(
            status_code=500,
            content=_fallback_body(request, str(exc), exc.partial_plan),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        # Basic generic handler to ensure JSON responses for unexpected errors.
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


app = create_app()
