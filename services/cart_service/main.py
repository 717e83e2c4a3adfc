from fastapi import FastAPI
from sqlalchemy import text

from shared.config.database import Base, engine, is_sqlite, DATABASE_URL
from shared.observability.setup import setup_observability

from .models import CartItem  # noqa: F401
from .router import router, public_router

cart_app = FastAPI(title="Cart Service", version="1.0.0")

setup_observability(cart_app, "cart_service")
cart_app.include_router(public_router)
cart_app.include_router(router)

@cart_app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        if not is_sqlite(DATABASE_URL):
            await conn.execute(text("CREATE SCHEMA IF NOT EXISTS cart_schema"))
        await conn.run_sync(Base.metadata.create_all)
