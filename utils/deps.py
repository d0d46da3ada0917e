from core.database import SessionLocal
from core.config import settings
from dataclasses import dataclass
from typing import Annotated
from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from starlette import status
from services.auth_service import AuthService, BindingPolicy
from services.event_publisher import EventPublisher
from services.token_service import TokenCodec, TokenError
from services.token_store import RefreshTokenStore
from services.user_service import UserService

UNKNOWN_IP = "Unknown IP"
UNKNOWN_DEVICE = "Unknown Device"


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_event_publisher(request: Request) -> EventPublisher:
    return request.app.state.event_publisher


def get_binding_policy() -> BindingPolicy:
    return BindingPolicy(
        enforce_ip=settings.ENFORCE_IP_BINDING,
        enforce_device=settings.ENFORCE_DEVICE_BINDING
    )


def get_user_service(db: db_dependency) -> UserService:
    return UserService(db)


def get_auth_service(db: db_dependency,
                     codec: Annotated[TokenCodec, Depends(get_token_codec)],
                     publisher: Annotated[EventPublisher, Depends(get_event_publisher)],
                     binding: Annotated[BindingPolicy, Depends(get_binding_policy)]) -> AuthService:
    return AuthService(
        users=UserService(db),
        tokens=RefreshTokenStore(db, clock=codec.clock),
        codec=codec,
        publisher=publisher,
        binding=binding
    )

auth_service_dependency = Annotated[AuthService, Depends(get_auth_service)]
user_service_dependency = Annotated[UserService, Depends(get_user_service)]


@dataclass(frozen=True)
class ClientContext:
    ip: str
    device: str


def get_client_context(request: Request) -> ClientContext:
    ip = request.client.host if request.client else None
    return ClientContext(
        ip=ip or UNKNOWN_IP,
        device=request.headers.get("user-agent") or UNKNOWN_DEVICE
    )

client_dependency = Annotated[ClientContext, Depends(get_client_context)]


def get_current_user(token: Annotated[str, Depends(OAuth2PasswordBearer(tokenUrl="auth/login"))],
                     codec: Annotated[TokenCodec, Depends(get_token_codec)]):
    try:
        claims = codec.verify_access_token(token)
    except TokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Could not validate credentials.",
                            headers={"WWW-Authenticate": "Bearer"})

    return {"user_id": claims.user_id, "ip": claims.ip, "device": claims.device}


user_dependency = Annotated[dict, Depends(get_current_user)]
