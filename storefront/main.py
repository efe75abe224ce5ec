from datetime import timedelta
from fastapi import FastAPI
from pymongo import MongoClient
from prometheus_fastapi_instrumentator import Instrumentator
import structlog

from storefront.version import VERSION
from storefront.api import auth, orders, products
from storefront.core.config import Settings, settings as default_settings
from storefront.core.errors import register_exception_handlers
from storefront.core.logging import configure_logging
from storefront.db.client import DocumentStore
from storefront.security.utils import AdminAccount
from storefront.services.catalog import CatalogCache, ProductCatalog
from storefront.services.orders import OrderLifecycleManager
from storefront.services.sequence import SequenceGenerator
from storefront.store.session_store import SessionStore, SessionSweeper

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, client: MongoClient | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings)

    app = FastAPI(title="Storefront Service", version=VERSION)

    # Instrument the app BEFORE adding routes or middleware
    Instrumentator().instrument(app).expose(
        app,
        include_in_schema=False,
        endpoint="/metrics",
        should_gzip=True,
    )
    register_exception_handlers(app)

    # Components live for the lifetime of the app; nothing is module-global
    store = DocumentStore.from_settings(settings, client)
    sequence = SequenceGenerator(store)
    cache = CatalogCache()
    catalog = ProductCatalog(store, cache, sequence, default_image=settings.DEFAULT_PRODUCT_IMAGE)
    sessions = SessionStore(ttl=timedelta(seconds=settings.SESSION_TTL_SECONDS))

    app.state.settings = settings
    app.state.store = store
    app.state.cache = cache
    app.state.catalog = catalog
    app.state.orders = OrderLifecycleManager(store, catalog, sequence)
    app.state.sessions = sessions
    app.state.sweeper = SessionSweeper(sessions, interval=settings.SESSION_SWEEP_INTERVAL_SECONDS)
    app.state.admin = AdminAccount.from_settings(settings)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/v1/_info")
    def info():
        return {"service": "storefront", "version": VERSION}

    @app.on_event("startup")
    def startup_event():
        for route in app.routes:
            if hasattr(route, "methods") and hasattr(route, "path"):
                logger.debug("route_registered", methods=sorted(route.methods), path=route.path)
        store.ensure_indexes()
        cache.load(store)
        app.state.sweeper.start()

    @app.on_event("shutdown")
    def shutdown_event():
        app.state.sweeper.stop()
        store.close()

    app.include_router(products.router, prefix="/api", tags=["products"])
    app.include_router(orders.router, prefix="/api", tags=["orders"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    return app


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.getenv("PORT", 8085))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
