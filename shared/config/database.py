from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
import os
from dotenv import load_dotenv

load_dotenv()

DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost") # In Docker, this will be 'postgres'
DB_PORT = os.getenv("POSTGRES_PORT", "5433")
DB_NAME = os.getenv("POSTGRES_DB", "harvest_market")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)

# One schema per service, simulating microservice isolation on a shared cluster
SERVICE_SCHEMAS = (
    "auth_schema",
    "product_schema",
    "cart_schema",
    "order_schema",
    "payment_schema",
)

# SQLite has no schemas: every service table lands in the main database
SQLITE_SCHEMA_MAP = {schema: None for schema in SERVICE_SCHEMAS}


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(url: str, **kwargs):
    engine = create_async_engine(url, **kwargs)
    if is_sqlite(url):
        engine = engine.execution_options(schema_translate_map=SQLITE_SCHEMA_MAP)
    return engine


engine = build_engine(DATABASE_URL, echo=os.getenv("SQL_ECHO", "false").lower() == "true")

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
