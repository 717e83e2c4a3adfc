from .jwt_handler import create_access_token, verify_access_token
from .api_key import verify_api_key
from .dependencies import (
    Principal,
    get_current_principal,
    get_current_user,
    require_permission,
    verify_internal_api_key,
)
from .permissions import Permission, Role, capabilities_for, has_permission
from .rate_limiter import limiter, user_id_or_ip

__all__ = [
    "create_access_token",
    "verify_access_token",
    "verify_api_key",
    "Principal",
    "get_current_principal",
    "get_current_user",
    "require_permission",
    "verify_internal_api_key",
    "Permission",
    "Role",
    "capabilities_for",
    "has_permission",
    "limiter",
    "user_id_or_ip"
]
