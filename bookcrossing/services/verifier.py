"""
Credential Verifier

Issues and validates bearer tokens bound to a user identity.

Two implementations share one async contract, validate(token):

- LocalCredentialVerifier: decodes the JWT in-process. Used by the
  identity service, which holds the signing key and issues tokens.
- RemoteCredentialVerifier: asks the identity service over HTTP
  (POST /validate). Used by the catalog and exchange services.

A token that is malformed, expired, or signed with another key is simply
invalid; validate() never raises for that. The remote verifier raises
VerifierUnavailableError only when the identity service cannot be
reached, so callers can answer 503 instead of 401.

Usage:
    verifier = RemoteCredentialVerifier("http://localhost:3001")
    await verifier.open()
    result = await verifier.validate("Bearer eyJ...")
    if result.valid:
        print(result.user.id)
"""

import logging
from datetime import timedelta
from typing import Any

import httpx
from pydantic import ValidationError

from bookcrossing.config import Settings
from bookcrossing.errors import VerifierUnavailableError
from bookcrossing.schemas.token import TokenUser, TokenValidation
from bookcrossing.services.security import create_access_token, decode_token, strip_bearer

logger = logging.getLogger(__name__)


class LocalCredentialVerifier:
    """
    Token issuer and verifier holding the signing key.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_delta: timedelta = timedelta(hours=1),
    ) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_delta = expires_delta

    @classmethod
    def from_settings(cls, settings: Settings) -> "LocalCredentialVerifier":
        return cls(
            secret_key=settings.secret_key,
            algorithm=settings.jwt_algorithm,
            expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        )

    def issue(self, user_id: int, username: str) -> str:
        """Issue a token carrying {id, username}."""
        return create_access_token(
            {"id": user_id, "username": username},
            secret_key=self.secret_key,
            algorithm=self.algorithm,
            expires_delta=self.expires_delta,
        )

    def verify(self, token: Any) -> TokenValidation:
        """Check signature and expiry; never raises."""
        if not isinstance(token, str):
            return TokenValidation(valid=False)

        raw = strip_bearer(token)
        if raw is None:
            return TokenValidation(valid=False)

        payload = decode_token(raw, self.secret_key, self.algorithm)
        if payload is None:
            return TokenValidation(valid=False)

        try:
            user = TokenUser.model_validate(payload)
        except ValidationError:
            logger.warning("Token payload is missing identity claims")
            return TokenValidation(valid=False)

        return TokenValidation(valid=True, user=user)

    async def validate(self, token: str | None) -> TokenValidation:
        return self.verify(token)

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass


class RemoteCredentialVerifier:
    """
    Validates tokens by calling the identity service's /validate endpoint.

    The HTTP client is created on open() unless one is injected (tests pass
    a client wired to the identity app with httpx.ASGITransport). No
    timeout is configured beyond httpx's transport default.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    async def open(self) -> None:
        self._get_client()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def validate(self, token: str | None) -> TokenValidation:
        """
        Ask the identity service whether the token is valid.

        Raises:
            VerifierUnavailableError: If the identity service is unreachable
        """
        client = self._get_client()

        try:
            response = await client.post(
                f"{self.base_url}/validate",
                json={"token": token},
            )
        except httpx.HTTPError as e:
            logger.error(f"Auth service error: {e}")
            raise VerifierUnavailableError() from e

        if not response.is_success:
            logger.warning(f"Auth service answered {response.status_code} to /validate")
            return TokenValidation(valid=False)

        try:
            return TokenValidation.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.warning("Auth service returned an unreadable validation result")
            return TokenValidation(valid=False)
