from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from models.users import User
from schemas.user_schemas import SortBy, SortOrder, UserRole
from services.errors import Conflict, StoreUnavailable
from utils.logger import get_logger

logger = get_logger(__name__)

SORT_COLUMNS = {
    SortBy.created_at: User.created_at,
    SortBy.username: User.username,
    SortBy.email: User.email,
}


class UserService:
    """
    User directory: plain lookups and creation over the ``users`` table.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fetch_one(self, stmt) -> User | None:
        try:
            return self.db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"User lookup failed: {exc}", exc_info=True)
            raise StoreUnavailable() from exc

    def find_by_id(self, user_id: int) -> User | None:
        return self._fetch_one(select(User).where(User.id == user_id))

    def find_by_email(self, email: str) -> User | None:
        return self._fetch_one(select(User).where(User.email == email.lower().strip()))

    def find_by_username(self, username: str) -> User | None:
        return self._fetch_one(select(User).where(User.username == username))

    def exists_by_email_or_username(self, email: str | None = None, username: str | None = None) -> bool:
        conditions = []
        if email:
            conditions.append(User.email == email.lower().strip())
        if username:
            conditions.append(User.username == username)
        if not conditions:
            return False

        stmt = select(User.id).where(or_(*conditions)).limit(1)
        return self._fetch_one(stmt) is not None

    def create(self, username: str, email: str, password_hash: str, commit: bool = True) -> User:
        """
        Inserts a user. The password must already be hashed.

        With ``commit=False`` the row is only flushed (it gets its id and hits
        the unique constraints) and the caller commits or calls ``discard``.

        Raises:
            Conflict: username or email taken (including a concurrent insert
                that won the unique constraint)
            StoreUnavailable: any other database failure
        """
        model = User(
            username=username,
            email=email.lower().strip(),
            hashed_password=password_hash
        )
        try:
            self.db.add(model)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "User insert hit a unique constraint",
                extra={"username": username, "email": email}
            )
            raise Conflict() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"User insert failed: {exc}", exc_info=True)
            raise StoreUnavailable() from exc

        if commit:
            self.db.refresh(model)
        return model

    def discard(self) -> None:
        """Drops a pending, uncommitted insert."""
        self.db.rollback()

    def list_users(self, page: int = 1, limit: int = 10, search: str | None = None,
                   sort_by: SortBy = SortBy.created_at, sort_order: SortOrder = SortOrder.desc,
                   role: UserRole | None = None) -> tuple[list[User], int]:
        """
        One page of users plus the total number of matches.

        ``search`` matches username or email substrings, case-insensitively.
        """
        filters = []
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(func.lower(User.username).like(pattern),
                               func.lower(User.email).like(pattern)))
        if role is not None:
            filters.append(User.role == role.value)

        column = SORT_COLUMNS[sort_by]
        order = column.asc() if sort_order == SortOrder.asc else column.desc()

        items_stmt = (
            select(User)
            .where(*filters)
            .order_by(order, User.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count(User.id)).where(*filters)

        try:
            users = list(self.db.execute(items_stmt).scalars().all())
            total = self.db.execute(count_stmt).scalar_one()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"User listing failed: {exc}", exc_info=True)
            raise StoreUnavailable() from exc

        return users, total
