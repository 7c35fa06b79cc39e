"""
Configuration module for the Graph Proxy service.

This module uses Pydantic Settings to load and validate environment variables
for Azure AD (Entra ID) token acquisition, the upstream Microsoft Graph
endpoint, CORS and logging.

Environment variables are loaded from .env file or system environment.
"""

import re
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Azure AD credentials are used for the on-behalf-of exchange that turns
    the caller's bearer token into a Microsoft Graph token.
    """

    # =========================================================================
    # Azure AD / Entra ID Configuration (Token Acquisition)
    # =========================================================================

    AZURE_TENANT_ID: str = Field(
        ...,
        description="Azure AD Tenant ID (GUID format)",
        min_length=36,
        max_length=36,
    )

    AZURE_CLIENT_ID: str = Field(
        ...,
        description="Azure AD Application (Client) ID of this web API",
        min_length=36,
        max_length=36,
    )

    AZURE_CLIENT_SECRET: str = Field(
        ...,
        description="Azure AD Client Secret (confidential client)",
        min_length=1,
    )

    # =========================================================================
    # Upstream (Microsoft Graph) Configuration
    # =========================================================================

    GRAPH_BASE_URL: HttpUrl = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Graph base URL including the API version segment",
        validate_default=True,
    )

    GRAPH_SCOPES: str = Field(
        default="User.Read MailboxSettings.Read Calendars.ReadWrite",
        description="Space-separated Graph scopes requested for every proxied call",
        min_length=1,
    )

    UPSTREAM_TIMEOUT_SECONDS: Optional[float] = Field(
        None,
        description="Upstream request timeout (unset keeps the httpx default)",
        gt=0,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the proxy server",
    )

    PORT: int = Field(
        default=8080,
        description="Port to bind the proxy server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def graph_scopes_list(self) -> List[str]:
        """
        Parse and return GRAPH_SCOPES as a list.

        Returns:
            List of scope strings in declaration order.
        """
        return self.GRAPH_SCOPES.split()

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def azure_authority(self) -> str:
        """Full authority URL for the tenant."""
        return f"https://login.microsoftonline.com/{self.AZURE_TENANT_ID}"

    @property
    def graph_base_url_str(self) -> str:
        """
        Get the Graph base URL as string (for HTTP client usage).

        Returns:
            Base URL without trailing slash, version segment included.
        """
        return str(self.GRAPH_BASE_URL).rstrip("/")

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("AZURE_TENANT_ID", "AZURE_CLIENT_ID")
    @classmethod
    def validate_guid_format(cls, v: str) -> str:
        """
        Validate that Azure IDs are in GUID format.

        Raises:
            ValueError: If not a valid GUID format
        """
        if not GUID_PATTERN.match(v):
            raise ValueError(
                f"Invalid GUID format: {v}. "
                "Expected format: xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx"
            )

        return v.lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        v = v.upper()
        if v not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.

    Example:
        >>> from graph_proxy.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.graph_base_url_str)
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Called during application startup so misconfiguration shows up in the
    logs before the first proxied request.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    if not settings.graph_scopes_list:
        errors.append("No Graph scopes configured")

    base_path = settings.GRAPH_BASE_URL.path or ""
    if base_path.strip("/") == "":
        errors.append(
            "GRAPH_BASE_URL has no version segment (expected e.g. https://graph.microsoft.com/v1.0)"
        )

    if settings.GRAPH_BASE_URL.scheme != "https":
        warnings.append("GRAPH_BASE_URL is not HTTPS (bearer tokens sent in clear text)")

    if not settings.allowed_origins_list:
        warnings.append("ALLOWED_ORIGINS is not set (CORS disabled)")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "graph_base_url": settings.graph_base_url_str,
        "graph_scopes": settings.graph_scopes_list,
    }
