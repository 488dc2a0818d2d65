# app/main.py
from fastapi import FastAPI
import uvicorn

from app.api import register_error_handlers
from app.api.routers import health, carts, payments, orders
from app.data.database import Base, engine
from app.utils.logging import get_logger

# import wszystkich modeli przed create_all
from app.data import models  # noqa: F401

logger = get_logger(__name__)


def init_db():
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables ready")


def create_app() -> FastAPI:
    init_db()

    app = FastAPI(
        title="Storefront Checkout Service",
        version="1.0.0",
    )
    register_error_handlers(app)

    # Include routers
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(payments.router)
    app.include_router(orders.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
