from dataclasses import dataclass
from pydantic import ValidationError as PydanticValidationError
from models.users import User
from schemas.auth_schemas import LoginRequest, RegisterRequest, TokenPair
from services.errors import Conflict, Unauthorized, ValidationError
from services.event_publisher import EventPublisher, USER_LOGIN_TOPIC, USER_REGISTRATION_TOPIC
from services.token_service import TokenCodec, TokenExpiredError, TokenInvalidError
from services.token_store import DEVICE_INFO_MAX_LENGTH, RefreshTokenStore
from services.user_service import UserService
from utils.hashing import get_password_hash, verify_password
from utils.logger import get_logger

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid refresh token"


@dataclass(frozen=True)
class BindingPolicy:
    """
    Whether a refresh must come from the ip / device the session was last
    issued to. Both off by default: the values are recorded for audit only.
    """
    enforce_ip: bool = False
    enforce_device: bool = False


@dataclass(frozen=True)
class AuthResult:
    user: User
    tokens: TokenPair


class AuthService:
    """
    Register, login and refresh on top of the user directory, the token
    codec and the refresh-token store.
    """

    def __init__(self, users: UserService, tokens: RefreshTokenStore, codec: TokenCodec,
                 publisher: EventPublisher, binding: BindingPolicy = BindingPolicy()):
        self.users = users
        self.tokens = tokens
        self.codec = codec
        self.publisher = publisher
        self.binding = binding

    def register(self, username: str, email: str, password: str, ip: str, device: str) -> AuthResult:
        """
        Creates a user and logs them straight in.

        Flow:
        1. Validate input shape
        2. Reject taken username/email
        3. Hash password and create the user
        4. Issue the token pair, committing user and session together
        5. Announce the registration (best effort)

        Raises:
            ValidationError: malformed username, email or password
            Conflict: username or email already registered
            StoreUnavailable: database fault; nothing was persisted
        """
        try:
            data = RegisterRequest(username=username, email=email, password=password)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

        if self.users.exists_by_email_or_username(email=data.email, username=data.username):
            logger.warning(
                "Registration attempt with existing email or username",
                extra={"email": data.email, "username": data.username}
            )
            raise Conflict("User already exists")

        # Flushed only: the token store commit covers the user and its first session
        user = self.users.create(data.username, data.email, get_password_hash(data.password),
                                 commit=False)
        try:
            tokens = self._issue_tokens(user.id, ip, device)
        except Exception:
            self.users.discard()
            raise

        logger.info("User registered", extra={"user_id": user.id, "username": user.username})
        self._notify(USER_REGISTRATION_TOPIC, user)

        return AuthResult(user=user, tokens=tokens)

    def login(self, email: str, password: str, ip: str, device: str) -> AuthResult:
        """
        Checks credentials and issues a new token pair (a new session).

        Unknown email and wrong password fail the same way so the response
        does not reveal which accounts exist.
        """
        try:
            data = LoginRequest(email=email, password=password)
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

        user = self.users.find_by_email(data.email)

        if not user:
            logger.warning("Login failed - user not found", extra={"email": data.email})
            raise Unauthorized(INVALID_CREDENTIALS)

        if not verify_password(data.password, user.hashed_password):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id, "email": data.email}
            )
            raise Unauthorized(INVALID_CREDENTIALS)

        tokens = self._issue_tokens(user.id, ip, device)

        logger.info("User logged in", extra={"user_id": user.id})
        self._notify(USER_LOGIN_TOPIC, user)

        return AuthResult(user=user, tokens=tokens)

    def refresh(self, refresh_token: str, ip: str, device: str) -> TokenPair:
        """
        Exchanges a refresh token for a new pair and retires the old token.

        The stored session is rotated with a compare-and-swap, so a token can
        be redeemed once: a replay, or the loser of two concurrent refreshes,
        finds no matching row and is rejected.

        Every rejection raises the same ``Unauthorized``; the actual reason
        is only logged.
        """
        try:
            claims = self.codec.verify_refresh_token(refresh_token)
        except TokenExpiredError:
            self._reject_refresh("token expired")
        except TokenInvalidError:
            self._reject_refresh("token invalid")

        user = self.users.find_by_id(claims.user_id)
        if not user:
            self._reject_refresh("owner no longer exists", user_id=claims.user_id)

        record = self.tokens.find_by_owner_and_value(user.id, refresh_token)
        if record is None:
            self._reject_refresh("not issued or already rotated", user_id=user.id)

        if self.tokens.is_expired(record):
            self._reject_refresh("session expired", user_id=user.id)

        if self.binding.enforce_ip and record.ip_address != ip:
            self._reject_refresh("ip mismatch", user_id=user.id)

        if self.binding.enforce_device and record.device_info != device[:DEVICE_INFO_MAX_LENGTH]:
            self._reject_refresh("device mismatch", user_id=user.id)

        issued = self.codec.sign_refresh_token(user.id, ip, device)
        rotated = self.tokens.rotate(
            record.id,
            expected_value=refresh_token,
            new_value=issued.token,
            expires_at=issued.expires_at,
            ip=ip,
            device=device
        )
        if rotated is None:
            self._reject_refresh("lost rotation race", user_id=user.id)

        logger.info("Refresh token rotated", extra={"user_id": user.id, "record_id": record.id})

        return TokenPair(
            access_token=self.codec.sign_access_token(user.id, ip, device),
            refresh_token=issued.token
        )

    def _issue_tokens(self, user_id: int, ip: str, device: str) -> TokenPair:
        # Persist the session before the refresh token leaves the service
        issued = self.codec.sign_refresh_token(user_id, ip, device)
        self.tokens.create(user_id, issued.token, ip, device, issued.expires_at)

        return TokenPair(
            access_token=self.codec.sign_access_token(user_id, ip, device),
            refresh_token=issued.token
        )

    def _notify(self, topic: str, user: User) -> None:
        try:
            self.publisher.publish(topic, {"userId": user.id, "username": user.username})
        except Exception as exc:
            logger.error(
                f"Event publication failed: {exc}",
                extra={"topic": topic, "user_id": user.id, "error_type": type(exc).__name__}
            )

    @staticmethod
    def _reject_refresh(reason: str, user_id: int | None = None):
        logger.warning("Refresh rejected", extra={"reason": reason, "user_id": user_id})
        raise Unauthorized(INVALID_REFRESH_TOKEN)
