from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore", populate_by_name=True
    )

    # App settings
    PROJECT_NAME: str = "FinAnalyst"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # "dynamo" or "memory"
    STORE_BACKEND: str = Field(default="dynamo")

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_ENDPOINT_URL: Optional[str] = Field(default=None)
    DYNAMO_USERS_TABLE: str = Field(default="finanalyst-users", validation_alias="DYNAMO_TABLE_USERS")
    DYNAMO_TRANSACTIONS_TABLE: str = Field(
        default="finanalyst-transactions", validation_alias="DYNAMO_TABLE_TRANSACTIONS"
    )

    # JWT Authentication
    JWT_SECRET_KEY: str = Field(default="change-me-in-production", validation_alias="JWT_SECRET")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_DAYS: int = 30


@lru_cache
def get_settings() -> Settings:
    return Settings()
