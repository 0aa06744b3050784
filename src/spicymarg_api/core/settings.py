from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./spicymarg.db"
    secret_key: str = "change-me"

    # Application URLs
    public_app_url: str = "http://localhost:3000"
    api_base_url: str = "http://localhost:8000"
    review_link: str = "https://g.co/kgs/RFM6TGv"

    # Brevo CRM / messaging
    brevo_api_key: str = ""
    brevo_base_url: str = "https://api.brevo.com/v3"
    brevo_timeout_seconds: float = 10.0
    brevo_sms_sender: str = "Trap"
    brevo_custom_header: str = "trap-margarita-funnel"
    brevo_signup_list_ids: list[int] = Field(default_factory=lambda: [7])
    brevo_voucher_template_id: int = 49
    brevo_final_thanks_template_id: int = 4

    @field_validator("brevo_signup_list_ids", mode="before")
    @classmethod
    def _parse_list_ids(cls, value: object) -> list[int]:
        if value is None:
            return []
        if isinstance(value, int):
            return [value]
        if isinstance(value, str):
            return [int(item.strip()) for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [int(item) for item in value]
        return []

    # Phone verification
    otp_length: int = 6
    otp_ttl_seconds: int = 10 * 60
    otp_max_attempts: int = 5

    # Signup
    minimum_signup_age: int = 18

    # Venue access
    bartender_access_code: str = "drank"

    # Admin dashboard
    admin_password_hash: str = ""
    admin_session_ttl_seconds: int = 8 * 60 * 60

    # Monthly metrics
    metrics_sms_unit_cost: float = 0.1091
    metrics_scheduler_enabled: bool = False
    metrics_schedule_path: str = "config/schedules.toml"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
