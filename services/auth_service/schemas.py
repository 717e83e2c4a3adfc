from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from shared.security.permissions import Role


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: Optional[str] = None
    # Admin accounts are provisioned out of band, never self-registered
    role: Literal["farmer", "buyer"] = "buyer"


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str]
    role: Role
    is_active: bool

    class Config:
        from_attributes = True


class ProfileResponse(UserResponse):
    capabilities: list[str] = []
