"""Config management for classpoint-gateway.

Settings are read from the environment (a local .env file is loaded first
by main.py). Every key has a NEXT_PUBLIC_* fallback so the gateway can share
an env file with the web frontend.
"""
import os
from typing import Optional


DEFAULT_ROOT_DOMAIN = "classpoint.ng"
DEFAULT_REGION = "us-east-1"


def _env(*names: str, default: str = "") -> str:
    """Return the first non-empty environment variable among names."""
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return default


class Settings:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls({
            "region": _env("COGNITO_REGION", "NEXT_PUBLIC_COGNITO_REGION", "AWS_REGION"),
            "client_id": _env("COGNITO_CLIENT_ID", "NEXT_PUBLIC_COGNITO_CLIENT_ID"),
            "client_secret": _env("COGNITO_CLIENT_SECRET"),
            "user_pool_id": _env("COGNITO_USER_POOL_ID"),
            "issuer": _env("COGNITO_ISSUER"),
            "root_domain": _env("ROOT_DOMAIN", "NEXT_PUBLIC_ROOT_DOMAIN"),
            "cognito_domain": _env("COGNITO_DOMAIN"),
            "idp_timeout": _env("IDP_TIMEOUT_SECONDS"),
            "jwks_cache_ttl": _env("JWKS_CACHE_TTL"),
            "host": _env("GATEWAY_HOST"),
            "port": _env("GATEWAY_PORT"),
            "log_level": _env("LOG_LEVEL"),
            "log_format": _env("LOG_FORMAT"),
        })

    @property
    def region(self) -> str:
        return self.data.get("region") or DEFAULT_REGION

    @property
    def client_id(self) -> str:
        return self.data.get("client_id") or ""

    @property
    def client_secret(self) -> str:
        return self.data.get("client_secret") or ""

    @property
    def user_pool_id(self) -> str:
        return self.data.get("user_pool_id") or ""

    @property
    def root_domain(self) -> str:
        return (self.data.get("root_domain") or DEFAULT_ROOT_DOMAIN).lower().strip(".")

    @property
    def cognito_domain(self) -> str:
        """Hosted UI base URL, without a trailing slash."""
        domain = self.data.get("cognito_domain") or f"https://auth.{self.root_domain}"
        return domain.rstrip("/")

    @property
    def issuer(self) -> Optional[str]:
        """Expected `iss` claim; derived from the user pool when not set."""
        if self.data.get("issuer"):
            return self.data["issuer"].rstrip("/")
        if self.user_pool_id:
            return f"https://cognito-idp.{self.region}.amazonaws.com/{self.user_pool_id}"
        return None

    @property
    def jwks_url(self) -> Optional[str]:
        if not self.issuer:
            return None
        return f"{self.issuer}/.well-known/jwks.json"

    @property
    def idp_endpoint(self) -> str:
        """Regional Cognito API endpoint used for InitiateAuth."""
        return f"https://cognito-idp.{self.region}.amazonaws.com/"

    @property
    def idp_timeout(self) -> float:
        return float(self.data.get("idp_timeout") or 8.0)

    @property
    def jwks_cache_ttl(self) -> int:
        return int(self.data.get("jwks_cache_ttl") or 3600)

    @property
    def host(self) -> str:
        return self.data.get("host") or "0.0.0.0"

    @property
    def port(self) -> int:
        return int(self.data.get("port") or 3000)

    @property
    def log_level(self) -> str:
        return (self.data.get("log_level") or "INFO").upper()

    @property
    def log_format(self) -> str:
        return (self.data.get("log_format") or "plain").lower()

    @property
    def hq_host(self) -> str:
        return f"app.{self.root_domain}"

    def is_valid(self) -> bool:
        """Check if config has the fields every auth flow needs."""
        return bool(self.client_id)

    def missing(self) -> list[str]:
        """Names of recommended keys that are not configured."""
        missing = []
        if not self.client_id:
            missing.append("COGNITO_CLIENT_ID")
        if not self.issuer:
            missing.append("COGNITO_USER_POOL_ID or COGNITO_ISSUER")
        return missing


def load_settings() -> Settings:
    """Load settings from the current environment."""
    return Settings.from_env()
