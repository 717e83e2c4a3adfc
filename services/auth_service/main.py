from fastapi import FastAPI
from sqlalchemy import text

from shared.config.database import Base, engine, is_sqlite, DATABASE_URL
from shared.observability.setup import setup_observability

from .models import User  # noqa: F401 registers model with Base
from .router import router, public_router

auth_app = FastAPI(
    title="Auth Service",
    version="1.0.0",
    description="JWT authentication, profiles and role capabilities.",
)

setup_observability(auth_app, "auth_service")

auth_app.include_router(router)
auth_app.include_router(public_router)

@auth_app.on_event("startup")
async def startup_event() -> None:
    async with engine.begin() as conn:
        if not is_sqlite(DATABASE_URL):
            await conn.execute(text("CREATE SCHEMA IF NOT EXISTS auth_schema"))
        await conn.run_sync(Base.metadata.create_all)
