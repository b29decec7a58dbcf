# pharmastock/core/config.py

from decimal import Decimal
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def check_batch_number_template(template: str) -> str:
    """Reject templates using placeholders other than order_code and line_number."""
    try:
        template.format(order_code="PO", line_number=1)
    except (KeyError, IndexError, ValueError) as exc:
        raise ValueError(f"Invalid batch number template {template!r}: {exc!r}") from exc

    return template


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = False

    # Security (tokens are issued by the account service, we only verify them)
    SECRET_KEY: str
    ALGORITHM: Literal["HS256", "HS512"] = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Database
    DATABASE_URL: str = "sqlite:///./pharmastock.db"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    SALES_RATE_LIMIT: str = "30/minute"

    # Batch generation on purchase order receipt
    BATCH_NUMBER_TEMPLATE: str = "{order_code}-L{line_number}"
    DEFAULT_MARKUP_PERCENT: Decimal = Decimal("20")
    DEFAULT_SHELF_LIFE_DAYS: int = 730

    # Alerts
    NEAR_EXPIRY_CRITICAL_DAYS: int = 7

    # Frontend
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("BATCH_NUMBER_TEMPLATE")
    @classmethod
    def validate_batch_number_template(cls, value: str) -> str:
        return check_batch_number_template(value)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
    )


settings = Settings()
