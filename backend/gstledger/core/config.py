"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List
import warnings

INSECURE_SECRET_KEYS = (
    "change-me-gstledger-development-secret-key",
    "secret-key",
    "change-me",
)


class Settings(BaseSettings):
    """Read from the environment and .env; names are upper-case and case-sensitive"""
    
    # Application
    APP_NAME: str = "GST Ledger API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"
    
    # Database
    DATABASE_URL: str = "sqlite:///./gstledger.db"
    
    # Security
    SECRET_KEY: str = INSECURE_SECRET_KEYS[0]
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours
    
    # CORS
    CORS_ORIGINS: str = "http://localhost:5000,http://127.0.0.1:5000"
    
    # Tax and numbering
    DEFAULT_SELLER_STATE: str = "27"  # Maharashtra
    DEFAULT_CREDIT_DAYS: int = 30
    INVOICE_NUMBER_PREFIX: str = "INV"
    PO_NUMBER_PREFIX: str = "PO"
    LOW_STOCK_DEFAULT: int = 0
    
    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]
    
    @property
    def database_url(self) -> str:
        url = self.DATABASE_URL
        if url.startswith("file:"):
            path = url[5:]
            return f"sqlite:///{path}"
        # Heroku-style URLs are rejected by SQLAlchemy 1.4+
        if url.startswith("postgres://"):
            return "postgresql://" + url[len("postgres://"):]
        return url
    
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"
    
    def settings_problems(self) -> List[str]:
        """Everything wrong with the current settings, most serious first"""
        problems = []
        if self.SECRET_KEY in INSECURE_SECRET_KEYS:
            problems.append("SECRET_KEY is a published default; set SECRET_KEY to a random value")
        elif len(self.SECRET_KEY) < 32:
            problems.append("SECRET_KEY must be at least 32 characters")
        if self.is_production and self.DEBUG:
            problems.append("DEBUG must be off in production")
        if not (self.DEFAULT_SELLER_STATE.isdigit() and len(self.DEFAULT_SELLER_STATE) == 2):
            problems.append(f"DEFAULT_SELLER_STATE must be a two-digit GST state code, got {self.DEFAULT_SELLER_STATE!r}")
        if self.DEFAULT_CREDIT_DAYS < 0:
            problems.append("DEFAULT_CREDIT_DAYS cannot be negative")
        if not self.INVOICE_NUMBER_PREFIX.strip() or not self.PO_NUMBER_PREFIX.strip():
            problems.append("Document number prefixes cannot be blank")
        return problems
    
    def validate_security_settings(self):
        """Raise in production, warn elsewhere"""
        problems = self.settings_problems()
        if problems and self.is_production:
            raise ValueError("Invalid production settings: " + "; ".join(problems))
        for problem in problems:
            warnings.warn(problem, UserWarning)
        return not problems
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
settings.validate_security_settings()
