from fastapi import APIRouter, Request
from starlette import status
from schemas.auth_schemas import (AuthResponse, LoginRequest, RefreshResponse,
RefreshTokenRequest, RegisterRequest, UserResponse)
from utils.deps import auth_service_dependency, client_dependency
from middleware.rate_limiter import limiter
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
@limiter.limit("3/minute")
def register(request: Request, body: RegisterRequest, auth: auth_service_dependency,
             client: client_dependency):
    """
    Create an account and return the user with a fresh token pair.
    """
    result = auth.register(body.username, body.email, body.password, client.ip, client.device)

    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(result.user),
        tokens=result.tokens
    )


@router.post("/login", response_model=AuthResponse)
@limiter.limit("5/minute")
def login(request: Request, body: LoginRequest, auth: auth_service_dependency,
          client: client_dependency):
    result = auth.login(body.email, body.password, client.ip, client.device)

    return AuthResponse(
        message="User logged in successfully",
        user=UserResponse.model_validate(result.user),
        tokens=result.tokens
    )


@router.post("/refresh-token", response_model=RefreshResponse)
@limiter.limit("10/minute")
def refresh_token(request: Request, body: RefreshTokenRequest, auth: auth_service_dependency,
                  client: client_dependency):
    """
    Exchange a refresh token for a new pair. The presented token is retired.
    """
    tokens = auth.refresh(body.refresh_token, client.ip, client.device)

    logger.info("Token pair refreshed")

    return RefreshResponse(message="Token refreshed successfully", tokens=tokens)
