import os

# Must be set before any service module reads its configuration
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["OTEL_TRACING_ENABLED"] = "false"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["OPENAI_API_KEY"] = ""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from services.assistant_service.main import assistant_app
from services.auth_service.main import auth_app
from services.auth_service.models import User
from services.cart_service.main import cart_app
from services.order_service.main import order_app
from services.payment_service.main import payment_app
from services.payment_service.provider import CheckoutSession, PaymentProviderError, get_payment_provider
from services.product_service.main import product_app
from services.product_service.models import Product
from shared.config.database import Base, build_engine, get_db
from shared.security import create_access_token

INTERNAL_HEADERS = {"X-Internal-API-Key": "test-internal-key"}
SERVICE_APPS = (auth_app, product_app, cart_app, order_app, payment_app, assistant_app)


class FakeCheckoutProvider:
    """In-memory stand-in for the hosted checkout provider."""

    def __init__(self):
        self.sessions: dict[str, CheckoutSession] = {}
        self.line_items: dict[str, list[dict]] = {}
        self.created: list[dict] = []
        self.fail_with: PaymentProviderError | None = None

    async def create_session(self, line_items, metadata, success_url, cancel_url):
        if self.fail_with:
            raise self.fail_with
        session_id = f"cs_test_{len(self.sessions) + 1}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.test/pay/{session_id}",
            payment_status="unpaid",
            metadata=dict(metadata),
        )
        self.sessions[session_id] = session
        self.created.append({
            "line_items": line_items,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        })
        return session

    async def retrieve_session(self, session_id):
        if self.fail_with:
            raise self.fail_with
        if session_id not in self.sessions:
            raise PaymentProviderError("No such checkout session", session_id)
        return self.sessions[session_id]

    async def list_line_items(self, session_id):
        return self.line_items.get(session_id, [])

    def mark_paid(self, session_id):
        self.sessions[session_id].payment_status = "paid"


@pytest.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_provider():
    return FakeCheckoutProvider()


@pytest.fixture
async def client(session_factory, fake_provider):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    for service_app in SERVICE_APPS:
        service_app.dependency_overrides[get_db] = override_get_db
    payment_app.dependency_overrides[get_payment_provider] = lambda: fake_provider

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    for service_app in SERVICE_APPS:
        service_app.dependency_overrides.clear()


# --- data helpers ---

async def make_user(db, role="buyer", full_name=None, email=None):
    user = User(
        email=email or f"{role}-{os.urandom(4).hex()}@harvestmarket.io",
        hashed_password="not-a-real-hash",
        full_name=full_name or role.title(),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_product(db, farmer_id, name="Wheat", price="7.25", quantity=100, category="Grains"):
    product = Product(
        user_id=farmer_id,
        name=name,
        price=Decimal(price),
        quantity=quantity,
        quantity_unit="kg",
        location="Nakuru",
        category=category,
    )
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


def auth_headers(user):
    token = create_access_token({"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


def shipping_address():
    return {
        "fullName": "Amina Buyer",
        "address": "12 Market Road",
        "city": "Nakuru",
        "state": "Rift Valley",
        "zipCode": "20100",
        "country": "Kenya",
        "phone": "0712345678",
    }


@pytest.fixture
async def farmer(db):
    return await make_user(db, role="farmer", full_name="Farmer Joe")


@pytest.fixture
async def other_farmer(db):
    return await make_user(db, role="farmer", full_name="Farmer Ann")


@pytest.fixture
async def buyer(db):
    return await make_user(db, role="buyer", full_name="Amina Buyer")


@pytest.fixture
async def wheat(db, farmer):
    return await make_product(db, farmer.id, name="Wheat", price="7.25")
