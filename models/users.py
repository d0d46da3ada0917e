from core.database import Base
from sqlalchemy import (Column, Integer, String, Enum)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin

USER_ROLES = ("USER", "ADMIN")


class User(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "users"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    username = Column(String(150), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(*USER_ROLES, name="user_role"), default="USER", nullable=False)
