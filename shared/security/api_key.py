import secrets

from shared.config.settings import INTERNAL_API_KEY


def verify_api_key(provided_key: str | None) -> bool:
    """Constant-time check of an X-Internal-API-Key header value."""
    if not provided_key:
        return False
    return secrets.compare_digest(provided_key.encode(), INTERNAL_API_KEY.encode())
