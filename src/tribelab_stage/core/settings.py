"""Application settings and configuration.

Settings are loaded from environment variables (or a local ``.env`` file)
with defaults suitable for local development.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application metadata
    app_name: str = Field(default="TribeLab Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    session_cookie_name: str = Field(default="tribelab_session", alias="SESSION_COOKIE_NAME")
    session_cookie_secure: bool = Field(default=False, alias="SESSION_COOKIE_SECURE")
    password_hash_rounds: int = Field(default=12, alias="PASSWORD_HASH_ROUNDS")

    # Database configuration
    database_url: str = Field(default="sqlite:///./tribelab.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Payment gateway (Razorpay-compatible REST API)
    razorpay_key_id: str | None = Field(default=None, alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str | None = Field(default=None, alias="RAZORPAY_KEY_SECRET")
    razorpay_webhook_secret: str | None = Field(default=None, alias="RAZORPAY_WEBHOOK_SECRET")
    razorpay_community_plan_id: str | None = Field(
        default=None,
        alias="RAZORPAY_COMMUNITY_PLAN_ID",
    )
    razorpay_base_url: str = Field(
        default="https://api.razorpay.com/v1",
        alias="RAZORPAY_BASE_URL",
    )
    razorpay_http_timeout_seconds: float = Field(
        default=10.0,
        alias="RAZORPAY_HTTP_TIMEOUT_SECONDS",
    )

    # Trials and community subscriptions
    trial_period_days: int = Field(default=14, alias="TRIAL_PERIOD_DAYS")
    community_subscription_amount: int = Field(
        default=240000,
        alias="COMMUNITY_SUBSCRIPTION_AMOUNT",
    )
    community_subscription_currency: str = Field(
        default="INR",
        alias="COMMUNITY_SUBSCRIPTION_CURRENCY",
    )
    community_subscription_total_count: int = Field(
        default=120,
        alias="COMMUNITY_SUBSCRIPTION_TOTAL_COUNT",
    )
    subscription_max_retries: int = Field(default=3, alias="SUBSCRIPTION_MAX_RETRIES")

    # Scheduled jobs
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def payments_configured(self) -> bool:
        """True when gateway API credentials are present."""
        return bool(self.razorpay_key_id and self.razorpay_key_secret)


settings = Settings()  # type: ignore[call-arg]
