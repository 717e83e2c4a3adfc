from fastapi import FastAPI
from sqlalchemy import text
from shared.config.database import engine, Base, DATABASE_URL, SERVICE_SCHEMAS, is_sqlite

# IMPORTANT: import models so they register with Base
from services.auth_service import models as auth_models  # noqa: F401
from services.product_service import models as product_models  # noqa: F401
from services.cart_service import models as cart_models  # noqa: F401
from services.order_service import models as order_models  # noqa: F401
from services.payment_service import models as payment_models  # noqa: F401

from services.auth_service.main import auth_app
from services.product_service.main import product_app
from services.cart_service.main import cart_app
from services.order_service.main import order_app
from services.payment_service.main import payment_app
from services.assistant_service.main import assistant_app

app = FastAPI(title="Harvest Market Cluster")

@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        # Create schemas (Postgres only; SQLite keeps every table in one file)
        if not is_sqlite(DATABASE_URL):
            for schema in SERVICE_SCHEMAS:
                await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))

        # Create all tables
        await conn.run_sync(Base.metadata.create_all)

@app.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "cluster", "status": "running"}

app.mount("/auth", auth_app)
app.mount("/products", product_app)
app.mount("/cart", cart_app)
app.mount("/orders", order_app)
app.mount("/payments", payment_app)
app.mount("/assistant", assistant_app)
