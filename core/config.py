from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env")

    ENV: str = "development"

    DATABASE_URL: str = "sqlite:///./auth.db"
    SECRET_KEY: str
    REFRESH_SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    # Token binding (ip / user agent captured at issuance)
    ENFORCE_IP_BINDING: bool = False
    ENFORCE_DEVICE_BINDING: bool = False
    # Empty means events are only logged
    KAFKA_BOOTSTRAP_SERVERS: str = ""
    KAFKA_CLIENT_ID: str = "auth-service"
    KAFKA_CONSUMER_TOPIC: str = "auth-topic"
    KAFKA_GROUP_ID: str = "auth-group"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]


settings = Settings()
