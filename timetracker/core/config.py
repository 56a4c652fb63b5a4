# timetracker/core/config.py
import logging
import secrets
from typing import List, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from timetracker.core.exceptions import ConfigurationException

load_dotenv()

logger = logging.getLogger(__name__)

MIN_SESSION_SECRET_LENGTH = 32
ONPREM_ALIASES = {"onprem", "on-prem", "on-premises", "fmb_onprem"}
DEFAULT_SAML_ACS_URL = "http://localhost:3000/saml/acs"
DEV_SAML_DEFAULTS = {
    "SAML_ENTITY_ID": "timetracker-dev",
    "SAML_SSO_URL": "http://localhost:3000/saml/dev-sso",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    APP_ENV: str = "development"
    DEPLOYMENT_MODE: str = "cloud"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    VERSION: str = "1.0.0"
    CORS_ORIGINS: List[str] = []

    # Database: DATABASE_URL wins over the individual DB_* parts.
    DATABASE_URL: Optional[str] = None
    DB_SERVER: Optional[str] = None
    DB_PORT: int = 1433
    DB_NAME: Optional[str] = None
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_DRIVER: str = "ODBC Driver 18 for SQL Server"
    DB_ENCRYPT: bool = True
    DB_TRUST_CERT: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 10
    DB_POOL_RECYCLE: int = 1800
    DB_CONNECT_RETRIES: int = 3
    DB_CREATE_SCHEMA: bool = False

    # Sessions
    SESSION_SECRET: Optional[str] = None
    SESSION_COOKIE_NAME: str = "timetracker.sid"
    SESSION_TTL_SECONDS: int = 7 * 24 * 60 * 60
    SESSION_COOKIE_SECURE: bool = False
    SESSION_CLEANUP_INTERVAL_SECONDS: int = 300
    SESSION_CLEANUP_BATCH_SIZE: int = 500
    SESSION_CLEANUP_PAUSE_SECONDS: float = 0.1
    SESSION_RECONNECT_BASE_SECONDS: float = 2.0
    SESSION_RECONNECT_MAX_ATTEMPTS: int = 5

    # SAML
    SAML_ENTITY_ID: Optional[str] = None
    SAML_SSO_URL: Optional[str] = None
    SAML_SLO_URL: Optional[str] = None
    SAML_CERTIFICATE: Optional[str] = None
    SAML_IDP_ENTITY_ID: Optional[str] = None
    SAML_ACS_URL: str = DEFAULT_SAML_ACS_URL

    @field_validator("APP_ENV", "DEPLOYMENT_MODE", mode="before")
    @classmethod
    def _normalize(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_onprem(self) -> bool:
        return self.DEPLOYMENT_MODE in ONPREM_ALIASES

    @property
    def is_onprem_production(self) -> bool:
        """The single answer to "are we running on-premises in production?"."""
        return self.is_production and self.is_onprem

    @property
    def deployment_label(self) -> str:
        return "on-premises" if self.is_onprem else "cloud"

    def get_database_url(self) -> Optional[str]:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not (self.DB_SERVER and self.DB_NAME and self.DB_USER and self.DB_PASSWORD):
            return None
        query = (
            f"driver={quote_plus(self.DB_DRIVER)}"
            f"&Encrypt={'yes' if self.DB_ENCRYPT else 'no'}"
            f"&TrustServerCertificate={'yes' if self.DB_TRUST_CERT else 'no'}"
        )
        return (
            f"mssql+pyodbc://{quote_plus(self.DB_USER)}:{quote_plus(self.DB_PASSWORD)}"
            f"@{self.DB_SERVER}:{self.DB_PORT}/{self.DB_NAME}?{query}"
        )

    def get_database_host(self) -> str:
        if self.DB_SERVER:
            return f"{self.DB_SERVER}:{self.DB_PORT}"
        url = self.DATABASE_URL or ""
        return url.split("@", 1)[1].split("/", 1)[0] if "@" in url else "local"

    def missing_onprem_values(self) -> List[str]:
        missing = []
        if not self.get_database_url():
            parts = ["DB_SERVER", "DB_NAME", "DB_USER", "DB_PASSWORD"]
            missing.append("DATABASE_URL (or " + "/".join(p for p in parts if not getattr(self, p)) + ")")
        if not self.SESSION_SECRET:
            missing.append("SESSION_SECRET")
        for name in ("SAML_ENTITY_ID", "SAML_SSO_URL", "SAML_CERTIFICATE"):
            if not getattr(self, name):
                missing.append(name)
        return missing


def resolve_settings(settings: Settings) -> Settings:
    """
    Validates settings for the selected mode.

    On-premises production fails fast on anything missing. Every other mode
    gets development defaults, and each substitution is logged.
    """
    if settings.is_onprem_production:
        missing = settings.missing_onprem_values()
        if missing:
            raise ConfigurationException(
                "On-premises production is missing required configuration: " + ", ".join(missing),
                missing=missing,
            )
        if len(settings.SESSION_SECRET) < MIN_SESSION_SECRET_LENGTH:
            raise ConfigurationException(
                f"SESSION_SECRET must be at least {MIN_SESSION_SECRET_LENGTH} characters in production",
                missing=["SESSION_SECRET"],
            )
        logger.info("Configuration loaded: on-premises production (database=%s)", settings.get_database_host())
        return settings

    if settings.is_production:
        logger.critical(
            "APP_ENV=production but DEPLOYMENT_MODE=%s: running in development/fallback mode "
            "with no database and no SAML. Set DEPLOYMENT_MODE=onprem for a real deployment.",
            settings.DEPLOYMENT_MODE,
        )

    updates = {}
    if not settings.SESSION_SECRET:
        logger.warning("SESSION_SECRET not set; using a random per-process secret (sessions reset on restart)")
        updates["SESSION_SECRET"] = secrets.token_urlsafe(48)
    for name, default in DEV_SAML_DEFAULTS.items():
        if not getattr(settings, name):
            logger.info("%s not set; using development default %s", name, default)
            updates[name] = default
    logger.warning("Configuration loaded: development/fallback mode (env=%s, deployment=%s)",
                   settings.APP_ENV, settings.DEPLOYMENT_MODE)
    return settings.model_copy(update=updates)


def load_settings(**overrides) -> Settings:
    return resolve_settings(Settings(**overrides))
