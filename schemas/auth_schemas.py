from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 6


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str
    created_at: datetime | None = None


class RegisterRequest(BaseModel):
    username: str = Field(min_length=USERNAME_MIN_LENGTH, max_length=150)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)

    @field_validator('username')
    @classmethod
    def validate_username(cls, value):
        if value != value.strip():
            raise ValueError('Username cannot start or end with whitespace')
        return value

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.lower().strip()


class LoginRequest(BaseModel):
    email: EmailStr
    # No length rule here: a short password is just a wrong password
    password: str = Field(min_length=1)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.lower().strip()


class RefreshTokenRequest(BaseModel):
    refresh_token: str

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if not value or not value.strip():
            raise ValueError('Refresh token cannot be empty')
        return value.strip()


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    tokens: TokenPair


class RefreshResponse(BaseModel):
    message: str
    tokens: TokenPair
