from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import EmailStr
from schemas.user_schemas import (CreateUserRequest, SortBy, SortOrder, UserListResponse,
UserRole, UsersQuery)
from schemas.auth_schemas import UserResponse
from services.errors import Conflict
from utils.deps import user_dependency, user_service_dependency
from utils.hashing import get_password_hash
from middleware.rate_limiter import limiter
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/users",
    tags=["users"]
)


def _found(model) -> UserResponse:
    if not model:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(model)


@router.get("", response_model=UserListResponse)
@limiter.limit("30/minute")
def list_users(request: Request, user: user_dependency, users: user_service_dependency,
               page: int = Query(1, ge=1),
               limit: int = Query(10, ge=1, le=100),
               search: str | None = None,
               sort_by: SortBy = SortBy.created_at,
               sort_order: SortOrder = SortOrder.desc,
               role: UserRole | None = None):
    """
    Paginated user listing with search, sorting and role filter.
    """
    query = UsersQuery(page=page, limit=limit, search=search, sort_by=sort_by,
                       sort_order=sort_order, role=role)
    items, total = users.list_users(**query.model_dump())

    return UserListResponse(
        message="Users retrieved successfully",
        users=[UserResponse.model_validate(item) for item in items],
        page=query.page,
        limit=query.limit,
        total=total
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
@limiter.limit("10/minute")
def create_user(request: Request, body: CreateUserRequest, user: user_dependency,
                users: user_service_dependency):
    if users.exists_by_email_or_username(email=body.email, username=body.username):
        raise Conflict("User with this email or username already exists")

    model = users.create(body.username, body.email, get_password_hash(body.password))

    logger.info("User created", extra={"user_id": model.id, "created_by": user.get("user_id")})

    return UserResponse.model_validate(model)


@router.get("/me", response_model=UserResponse)
@limiter.limit("30/minute")
def get_me(request: Request, user: user_dependency, users: user_service_dependency):
    """
    Current user (protected endpoint).
    """
    return _found(users.find_by_id(user.get("user_id")))


@router.get("/by-email", response_model=UserResponse)
@limiter.limit("30/minute")
def get_user_by_email(request: Request, user: user_dependency, users: user_service_dependency,
                      email: EmailStr = Query(...)):
    return _found(users.find_by_email(email))


@router.get("/username/{username}", response_model=UserResponse)
@limiter.limit("30/minute")
def get_user_by_username(request: Request, username: str, user: user_dependency,
                         users: user_service_dependency):
    return _found(users.find_by_username(username))


@router.get("/{user_id}", response_model=UserResponse)
@limiter.limit("30/minute")
def get_user_by_id(request: Request, user_id: int, user: user_dependency,
                   users: user_service_dependency):
    return _found(users.find_by_id(user_id))
