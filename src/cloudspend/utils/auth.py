"""
Authentication strategies for Google Cloud REST access.

Provides a single interface over the ways the dashboard can reach the
Google APIs: an API key sent as a query parameter, a static bearer token,
or a service account whose OAuth token is exchanged on demand.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import google.auth.transport.requests
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from pydantic import BaseModel, Field, field_validator

from ..providers.base import AuthenticationError, MalformedCredentialError

logger = logging.getLogger(__name__)

# Read-only scopes covering billing, compute, storage, sql, recommender and monitoring
GCP_READONLY_SCOPES = [
    "https://www.googleapis.com/auth/cloud-billing.readonly",
    "https://www.googleapis.com/auth/cloud-platform.read-only",
    "https://www.googleapis.com/auth/compute.readonly",
    "https://www.googleapis.com/auth/sqlservice.readonly",
    "https://www.googleapis.com/auth/devstorage.read_only",
    "https://www.googleapis.com/auth/recommender.readonly",
]

REQUIRED_SERVICE_ACCOUNT_FIELDS = ("type", "client_email", "private_key")


class AuthenticationResult(BaseModel):
    """Result of an authentication attempt with validation."""

    success: bool = Field(..., description="Whether authentication was successful")
    provider: str = Field(..., min_length=1, max_length=50, description="Cloud provider name")
    method: str = Field(..., min_length=1, max_length=100, description="Authentication method used")
    error_message: str | None = Field(
        None, max_length=1000, description="Error message if authentication failed"
    )
    credentials: Any | None = Field(None, description="Authenticated credentials object")

    @classmethod
    def create_success(cls, provider: str, method: str, credentials: Any = None) -> "AuthenticationResult":
        """Create a successful authentication result."""
        return cls(
            success=True,
            provider=provider,
            method=method,
            credentials=credentials,
            error_message=None,
        )

    @classmethod
    def create_failure(cls, provider: str, method: str, error_message: str) -> "AuthenticationResult":
        """Create a failed authentication result."""
        return cls(
            success=False,
            provider=provider,
            method=method,
            error_message=error_message[:1000],
            credentials=None,
        )

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        """Validate and normalize authentication method."""
        if not v or not v.strip():
            raise ValueError("Authentication method cannot be empty")
        return v.lower().strip().replace("-", "_").replace(" ", "_")

    @field_validator("error_message")
    @classmethod
    def validate_error_message(cls, v: str | None) -> str | None:
        """Validate error message."""
        if v is not None:
            stripped = v.strip()
            return stripped if stripped else None
        return v

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization (excluding credentials for security)."""
        result = self.model_dump(by_alias=True, exclude_unset=True)
        result.pop("credentials", None)
        return result


def parse_service_account_key(raw: str | dict[str, Any]) -> dict[str, Any]:
    """
    Parse a service account key blob.

    Args:
        raw: JSON text of the key file, or an already-decoded mapping

    Returns:
        The decoded key as a dictionary

    Raises:
        MalformedCredentialError: If the blob is not JSON or misses required fields
    """
    if isinstance(raw, dict):
        info = dict(raw)
    else:
        try:
            info = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise MalformedCredentialError(f"Service account key is not valid JSON: {e}") from e

    if not isinstance(info, dict):
        raise MalformedCredentialError("Service account key must be a JSON object")

    missing = [field for field in REQUIRED_SERVICE_ACCOUNT_FIELDS if not info.get(field)]
    if missing:
        raise MalformedCredentialError(
            f"Service account key missing required fields: {', '.join(missing)}"
        )

    if info["type"] != "service_account":
        raise MalformedCredentialError(f"Unexpected credential type: {info['type']}")

    return info


class AuthStrategy(ABC):
    """Abstract base class for request authentication strategies."""

    provider_name = "gcp"

    @property
    @abstractmethod
    def method(self) -> str:
        """Short name of the authentication method."""
        pass

    def auth_params(self) -> dict[str, str]:
        """Query parameters to add to every request."""
        return {}

    async def auth_headers(self) -> dict[str, str]:
        """Headers to add to every request."""
        return {}

    async def authenticate(self) -> AuthenticationResult:
        """Check that the strategy can produce credentials."""
        return AuthenticationResult.create_success(provider=self.provider_name, method=self.method)


class ApiKeyAuth(AuthStrategy):
    """API key passed as the ``key`` query parameter."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    @property
    def method(self) -> str:
        return "api_key"

    def auth_params(self) -> dict[str, str]:
        return {"key": self.api_key}


class BearerTokenAuth(AuthStrategy):
    """Pre-issued OAuth access token."""

    def __init__(self, token: str):
        self.token = token

    @property
    def method(self) -> str:
        return "access_token"

    async def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class ServiceAccountAuth(AuthStrategy):
    """Service account credentials exchanged for short-lived bearer tokens."""

    def __init__(self, info: dict[str, Any], scopes: list[str] | None = None):
        self.info = info
        self.scopes = scopes or GCP_READONLY_SCOPES
        self.credentials = service_account.Credentials.from_service_account_info(
            info, scopes=self.scopes
        )
        self._refresh_lock = asyncio.Lock()

    @property
    def method(self) -> str:
        return "service_account"

    @property
    def client_email(self) -> str | None:
        return self.info.get("client_email")

    async def _ensure_token(self) -> str:
        """Refresh the access token when missing or expired."""
        async with self._refresh_lock:
            if not self.credentials.valid:
                logger.debug(f"🟢 GCP: Refreshing service account token for {self.client_email}")
                request = google.auth.transport.requests.Request()
                try:
                    await asyncio.to_thread(self.credentials.refresh, request)
                except GoogleAuthError as e:
                    raise AuthenticationError(f"Service account token exchange failed: {e}") from e
        return self.credentials.token

    async def auth_headers(self) -> dict[str, str]:
        token = await self._ensure_token()
        return {"Authorization": f"Bearer {token}"}

    async def authenticate(self) -> AuthenticationResult:
        try:
            await self._ensure_token()
        except AuthenticationError as e:
            logger.error(f"GCP service account token exchange failed: {e}")
            return AuthenticationResult.create_failure(
                provider=self.provider_name, method=self.method, error_message=str(e)
            )
        return AuthenticationResult.create_success(
            provider=self.provider_name, method=self.method, credentials=self.credentials
        )


def build_auth_strategy(gcp_config: dict[str, Any]) -> AuthStrategy | None:
    """
    Select the authentication strategy from GCP configuration.

    Precedence is service account key, then access token, then API key.

    Args:
        gcp_config: The ``clouds.gcp`` configuration section

    Returns:
        The strategy, or None when no credential is configured

    Raises:
        MalformedCredentialError: If a service account key is present but unusable
    """
    service_account_key = gcp_config.get("service_account_key")
    if service_account_key:
        info = parse_service_account_key(service_account_key)
        try:
            strategy = ServiceAccountAuth(info)
        except ValueError as e:
            raise MalformedCredentialError(f"Invalid service account key: {e}") from e
        logger.info(f"🟢 GCP: Using service account {strategy.client_email}")
        return strategy

    access_token = gcp_config.get("access_token")
    if access_token:
        logger.info("🟢 GCP: Using configured access token")
        return BearerTokenAuth(access_token)

    api_key = gcp_config.get("api_key")
    if api_key:
        logger.info("🟢 GCP: Using API key authentication")
        return ApiKeyAuth(api_key)

    logger.debug("GCP: No credentials configured")
    return None
