from fastapi import FastAPI
from sqlalchemy import text
from shared.config.database import engine, Base, is_sqlite, DATABASE_URL
from shared.observability import setup_observability
from .router import router, public_router
from .models import Product  # noqa: F401

product_app = FastAPI(
    title="Product Service",
    version="1.0.0"
)

setup_observability(product_app, "product_service")

# /mine must win over the public /{product_id} route
product_app.include_router(router)
product_app.include_router(public_router)

@product_app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        if not is_sqlite(DATABASE_URL):
            await conn.execute(text("CREATE SCHEMA IF NOT EXISTS product_schema"))
        await conn.run_sync(Base.metadata.create_all)
