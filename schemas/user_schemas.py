from enum import Enum
from pydantic import BaseModel, Field
from schemas.auth_schemas import RegisterRequest, UserResponse


class SortBy(str, Enum):
    created_at = "created_at"
    username = "username"
    email = "email"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class UserRole(str, Enum):
    user = "USER"
    admin = "ADMIN"


class CreateUserRequest(RegisterRequest):
    """Same rules as self-registration."""


class UsersQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    search: str | None = None
    sort_by: SortBy = SortBy.created_at
    sort_order: SortOrder = SortOrder.desc
    role: UserRole | None = None


class UserListResponse(BaseModel):
    message: str
    users: list[UserResponse]
    page: int
    limit: int
    total: int
