from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MONGODB_URI: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "vidtube"

    # Tokens
    ACCESS_TOKEN_SECRET: str = "dev-access-secret-change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_SECRET: str = "dev-refresh-secret-change-me"
    REFRESH_TOKEN_EXPIRE_DAYS: int = 10
    JWT_ALGORITHM: str = "HS256"

    # HTTP
    CORS_ORIGIN: str = "http://localhost:3000"
    COOKIE_SECURE: bool = True
    PORT: int = 8000

    UPLOAD_DIR: str = "./uploads"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
