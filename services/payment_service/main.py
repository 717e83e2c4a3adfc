from fastapi import FastAPI
from sqlalchemy import text

from shared.config.database import DATABASE_URL, Base, engine, is_sqlite
from shared.observability.setup import setup_observability

from .models import Payment  # noqa: F401
from .router import router, public_router


payment_app = FastAPI(title="Payment Service", version="1.0.0")

setup_observability(payment_app, "payment_service")

payment_app.include_router(router)
payment_app.include_router(public_router)

@payment_app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        if not is_sqlite(DATABASE_URL):
            await conn.execute(text("CREATE SCHEMA IF NOT EXISTS payment_schema"))
        await conn.run_sync(Base.metadata.create_all)
