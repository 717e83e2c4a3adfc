"""
Runtime configuration shared by every service.

Values come from the environment (a local .env file is honoured) and are read
once at import time.
"""
import os
import warnings

from dotenv import load_dotenv

load_dotenv()

# Payment provider (hosted checkout sessions)
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")

# Where the provider sends the buyer back after the hosted payment page
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:5173")

# Local bound on the payment-session request made during checkout
CHECKOUT_SESSION_TIMEOUT_SECONDS = float(os.getenv("CHECKOUT_SESSION_TIMEOUT_SECONDS", "15"))

# Assistant chat widget
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ASSISTANT_MODEL = os.getenv("ASSISTANT_MODEL", "gpt-4o-mini")

# Observability
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
OTEL_TRACING_ENABLED = os.getenv("OTEL_TRACING_ENABLED", "true").lower() == "true"

# Cluster entry point used by the checkout flow client
MARKETPLACE_URL = os.getenv("MARKETPLACE_URL", "http://localhost:8000")


def _secret(name: str, dev_default: str) -> str:
    """A missing secret warns loudly and falls back to a development value."""
    value = os.getenv(name, "")
    if not value:
        warnings.warn(
            f"{name} is not set. Using an insecure development default. "
            "Set this env var in production!",
            stacklevel=2,
        )
        value = dev_default
    return value


# Security
JWT_SECRET_KEY = _secret("JWT_SECRET_KEY", "insecure-dev-secret-change-me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
INTERNAL_API_KEY = _secret("INTERNAL_API_KEY", "insecure-internal-key-change-me")
