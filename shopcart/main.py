import logging
from fastapi import FastAPI

from shopcart.core.config import settings
from shopcart.core.backend_client import BackendClient
from shopcart.db.session import create_engine, create_session_factory, init_db
from shopcart.services.cart import CartManager
from shopcart.services.storage import SqlCartStore
from shopcart.api import cart

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=f"{settings.SHOP_NAME} - Cart",
    description="Shopping cart API backed by the stock and catalog service",
    version="1.0.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.include_router(cart.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    manager = getattr(app.state, "cart_manager", None)
    return {
        "status": "ok",
        "shop_name": settings.SHOP_NAME,
        "cart_items": manager.item_count if manager else None
    }


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.SHOP_NAME} cart, stock API at {settings.API_BASE_URL}")
    engine = create_engine()
    await init_db(engine)

    backend_client = BackendClient()
    manager = CartManager(
        stock_service=backend_client,
        catalog_service=backend_client,
        store=SqlCartStore(create_session_factory(engine)),
    )
    await manager.init()

    app.state.engine = engine
    app.state.backend_client = backend_client
    app.state.cart_manager = manager


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down cart application")
    await app.state.cart_manager.dispose()
    await app.state.backend_client.close()
    await app.state.engine.dispose()
