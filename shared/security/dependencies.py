from dataclasses import dataclass

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer, APIKeyHeader
from .jwt_handler import verify_access_token
from .api_key import verify_api_key
from .permissions import Permission, Role, capabilities_for

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

# Defines the expected internal service header
api_key_header = APIKeyHeader(name="X-Internal-API-Key", auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: Role | None

    @property
    def capabilities(self) -> frozenset[Permission]:
        return capabilities_for(self.role)

    def can(self, permission: Permission) -> bool:
        return permission in self.capabilities


def _decode_or_401(token: str | None) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    payload = verify_access_token(token)
    if payload is None or payload.get("sub") is None:
        raise credentials_exception
    return payload


async def get_current_principal(request: Request, token: str = Depends(oauth2_scheme)) -> Principal:
    """Dependency to validate the JWT and return who is calling and with which role."""
    payload = _decode_or_401(token)

    try:
        role = Role(payload.get("role")) if payload.get("role") else None
    except ValueError:
        role = None

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = payload["sub"]
    return Principal(user_id=str(payload["sub"]), role=role)


async def get_current_user(principal: Principal = Depends(get_current_principal)) -> str:
    """Dependency to validate JWT and return the user ID (sub)."""
    return principal.user_id


def require_permission(permission: Permission):
    """Builds a dependency that admits only principals holding `permission`."""
    async def _checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.can(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission.value}",
            )
        return principal

    return _checker


async def verify_internal_api_key(api_key: str = Depends(api_key_header)) -> bool:
    """Dependency to validate service-to-service internal requests."""
    if not verify_api_key(api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing X-Internal-API-Key header"
        )
    return True
