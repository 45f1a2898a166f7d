"""
Centralized application configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application configuration"""

    # API Settings
    API_TITLE: str = "Dayspring Marketplace API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Marketplace API: catalog, checkout, Paystack payments and supplier fulfillment"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str
    DB_CONNECT_TIMEOUT: int = 10

    # Auth
    AUTH_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30
    AUTH_COOKIE_NAME: str = "access_token"
    AUTH_COOKIE_SECURE: bool = False

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:5173,https://yourdomain.com" or '["http://localhost:5173"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:5173,http://localhost:3000"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:5173"]

        # Try JSON parse first (for array format)
        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Paystack
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_TIMEOUT_SECONDS: float = 30.0
    BANKS_TIMEOUT_SECONDS: float = 15.0
    BANK_CACHE_TTL_SECONDS: int = 6 * 60 * 60

    # Payments
    APP_URL: str = "http://localhost:5173"
    PAYMENTS_TRIAL_MODE: bool = False
    PAYMENTS_REQUIRE_MANUAL_APPROVAL: bool = False
    PAYMENT_PENDING_TTL_MIN: int = 60
    ORDER_PAID_STATUS: str = "AWAITING_FULFILLMENT"
    INLINE_BANK_NAME: str = ""
    INLINE_BANK_ACCOUNT_NAME: str = ""
    INLINE_BANK_ACCOUNT_NUMBER: str = ""

    # Rate limiting (requests per minute)
    RATE_LIMIT_AUTHENTICATED: int = 600
    RATE_LIMIT_UNAUTHENTICATED: int = 120
    RATE_LIMIT_AUTH_ENDPOINTS: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
