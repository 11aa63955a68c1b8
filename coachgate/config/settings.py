from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for admin operations like creating credentials

    # Backend wiring: "supabase" or "memory" (in-process stores for development and tests)
    auth_backend: str = "supabase"

    # Session tokens
    session_secret: str = "CHANGE_ME"
    session_issuer: str = "coachgate"
    session_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 3600
    refresh_token_ttl_seconds: int = 604800

    # Cookies
    cookie_secure: bool = True
    cookie_samesite: str = "strict"

    # OAuth
    oauth_provider: str = "google"
    oauth_redirect_url: str = "http://localhost:5173/auth/callback"

    # Registration / login policy
    disposable_email_domains: str = (
        "tempmail.com,10minutemail.com,guerrillamail.com,mailinator.com,yopmail.com,temp-mail.org"
    )
    login_max_attempts: int = 3
    login_attempt_window_seconds: int = 300

    # App
    app_name: str = "coachgate"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    rate_limit_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_disposable_domains(self) -> List[str]:
        return [d.strip().lower() for d in self.disposable_email_domains.split(",") if d.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
