"""
Fleet Maintenance API Server

FastAPI server for work orders, procurement, estimates and the supporting
fleet records of each organization.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from asset_api import asset_router, part_router, vendor_router
from config import APP_ENV, FRONTEND_ORIGINS, LOG_LEVEL
from dashboard_api import router as dashboard_router
from db import init_db
from errors import register_error_handlers
from estimate_api import router as estimate_router
from import_api import router as import_router
from inspection_api import dvir_router, feedback_router, pm_router
from org_api import router as org_router
from procurement_api import purchase_order_router, requisition_router
from work_order_api import router as work_order_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    await init_db()
    logger.info("Fleet maintenance API ready (env=%s)", APP_ENV)
    yield


def create_app() -> FastAPI:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Fleet Maintenance API",
        description="Work orders, procurement and estimates for fleet maintenance",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Enable CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=FRONTEND_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    for router in (
        org_router,
        asset_router,
        vendor_router,
        part_router,
        work_order_router,
        requisition_router,
        purchase_order_router,
        estimate_router,
        dashboard_router,
        import_router,
        pm_router,
        dvir_router,
        feedback_router,
    ):
        app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "fleet-maintenance-api"}

    return app


app = create_app()


# Development server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
