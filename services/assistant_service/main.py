from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shared.observability import setup_observability
from shared.security import limiter

from .router import router

assistant_app = FastAPI(
    title="Assistant Service",
    version="1.0.0"
)

setup_observability(assistant_app, "assistant_service")

assistant_app.state.limiter = limiter
assistant_app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

assistant_app.include_router(router)
