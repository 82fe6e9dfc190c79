"""
Application configuration models and helpers.

Centralizes settings management so both the FastAPI app and the serverless
handler share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Annotated, Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

DEFAULT_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, (tuple, list)):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class GoogleSettings(BaseSettings):
    """Configuration required for interacting with Google OAuth."""

    model_config = _ENV

    client_id: str = Field(..., validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(
        "http://localhost:4000/auth/google/callback",
        validation_alias="GOOGLE_REDIRECT_URI",
        description="Must match the redirect URI registered with Google exactly.",
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = _ENV

    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        DEFAULT_SCOPES, validation_alias="OAUTH_SCOPES"
    )
    refresh_skew_seconds: int = Field(300, validation_alias="TOKEN_REFRESH_SKEW_SECONDS")
    http_timeout_seconds: float = Field(10.0, validation_alias="GOOGLE_HTTP_TIMEOUT_SECONDS")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_csv(value)


class SupabaseSettings(BaseSettings):
    """Supabase project used for session verification and token storage."""

    model_config = _ENV

    url: AnyHttpUrl = Field(..., validation_alias="SUPABASE_URL")
    anon_key: str = Field(..., validation_alias="SUPABASE_ANON_KEY")
    service_role_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("SUPABASE_SERVICE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
        description="Administrative key; bypasses row-level security on the token table.",
    )
    tokens_table: str = Field("google_oauth_tokens", validation_alias="SUPABASE_TOKENS_TABLE")

    @property
    def base_url(self) -> str:
        return str(self.url).rstrip("/")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _ENV

    token_encryption_secret: str = Field(
        ...,
        validation_alias=AliasChoices("ENCRYPTION_KEY", "TOKEN_ENCRYPTION_SECRET"),
        description=(
            "Passphrase the refresh-token key is derived from. Rotating it orphans "
            "every stored refresh token."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the service."""

    model_config = _ENV

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    port: int = Field(4000, validation_alias="PORT")
    frontend_url: AnyHttpUrl = Field(
        "http://localhost:3000",
        validation_alias=AliasChoices("FRONTEND_URL", "FRONTEND_BASE_URL"),
        description="Fallback redirect target after the OAuth callback.",
    )
    allowed_return_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("http://localhost:5173", "http://127.0.0.1:5173"),
        validation_alias="ALLOWED_RETURN_ORIGINS",
    )
    allow_lan_return_origins: bool = Field(False, validation_alias="ALLOW_LAN_RETURN_ORIGINS")
    cors_allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("http://localhost:3000", "http://localhost:3001"),
        validation_alias="CORS_ALLOWED_ORIGINS",
    )
    token_store_backend: Literal["supabase", "sqlite"] = Field(
        "supabase", validation_alias="TOKEN_STORE_BACKEND"
    )
    token_store_sqlite_path: str = Field(
        "./data/google_tokens.db", validation_alias="TOKEN_STORE_SQLITE_PATH"
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)

    @field_validator("allowed_return_origins", "cors_allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        return tuple(origin.rstrip("/") for origin in _split_csv(value))

    @model_validator(mode="after")
    def _require_service_key(self) -> "AppSettings":
        if self.token_store_backend == "supabase" and not self.supabase.service_role_key:
            raise ValueError(
                "SUPABASE_SERVICE_KEY is required when TOKEN_STORE_BACKEND=supabase."
            )
        return self

    @property
    def frontend_base_url(self) -> str:
        return str(self.frontend_url).rstrip("/")


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "DEFAULT_SCOPES",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "SupabaseSettings",
    "get_settings",
]
