"""Identity token verification for Sign in with Apple and Google Sign-In.

Provides:
- IdentityClaims: Normalized subset of provider claims
- IdentityVerifier: Protocol for provider token verification
- JwksIdentityVerifier: Verifies provider-issued JWTs against the provider JWKS
- apple_verifier() / google_verifier(): Provider presets

Note: Test-only key material lives in tests/support/identity_keys.py
"""

import threading
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, NoReturn, Protocol

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidSignatureError,
    InvalidTokenError,
    PyJWKClientError,
)

from precious.errors import ApiError, ApiErrorCode
from precious.logging import get_logger

logger = get_logger(__name__)

CLOCK_SKEW_SECONDS = 60

APPLE_JWKS_URL = "https://appleid.apple.com/auth/keys"
APPLE_ISSUERS = ("https://appleid.apple.com",)

GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


@dataclass(frozen=True)
class IdentityClaims:
    """What sign-in needs from a verified provider token."""

    sub: str
    email: str | None = None
    email_verified: bool = False
    name: str | None = None
    picture: str | None = None


class IdentityVerifier(Protocol):
    """Verifies a provider identity token and returns its claims.

    Raises:
        ApiError(E_INVALID_IDENTITY_TOKEN): Token is invalid, expired, or malformed.
        ApiError(E_AUTH_UNAVAILABLE): Provider keys could not be fetched.
    """

    def verify(self, token: str) -> IdentityClaims: ...


class JwksIdentityVerifier:
    """Verifier for RS256/ES256 provider tokens.

    Validates:
    - Signature via JWKS (refetched once on kid miss)
    - exp with 60s clock skew
    - iss is one of the provider issuers
    - aud is one of the configured client ids
    - sub is present
    """

    def __init__(
        self,
        provider: str,
        jwks_url: str,
        issuers: Sequence[str],
        audiences: Sequence[str],
        cache_ttl: int = 3600,
    ):
        self.provider = provider
        self.jwks_url = jwks_url
        self.issuers = tuple(issuers)
        self.audiences = list(audiences)
        self.cache_ttl = cache_ttl

        self._jwks_client: PyJWKClient | None = None
        self._jwks_lock = threading.Lock()

    def _get_jwks_client(self) -> PyJWKClient:
        with self._jwks_lock:
            if self._jwks_client is None:
                self._jwks_client = PyJWKClient(
                    self.jwks_url,
                    cache_keys=True,
                    lifespan=self.cache_ttl,
                )
            return self._jwks_client

    def _refresh_jwks(self) -> None:
        with self._jwks_lock:
            self._jwks_client = PyJWKClient(
                self.jwks_url,
                cache_keys=True,
                lifespan=self.cache_ttl,
            )

    def verify(self, token: str) -> IdentityClaims:
        if not self.audiences:
            logger.error("identity_provider_not_configured", provider=self.provider)
            raise ApiError(
                ApiErrorCode.E_AUTH_UNAVAILABLE,
                f"Sign in with {self.provider.capitalize()} is not configured",
            )

        signing_key = self._get_signing_key(token)

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                audience=self.audiences,
                leeway=CLOCK_SKEW_SECONDS,
                options={"require": ["exp", "iss", "sub", "aud"]},
            )
        except ExpiredSignatureError as e:
            self._fail("expired_token", "Identity token expired", e)
        except InvalidSignatureError as e:
            self._fail("invalid_signature", "Invalid identity token signature", e)
        except InvalidAudienceError as e:
            self._fail("invalid_audience", "Invalid identity token audience", e)
        except DecodeError as e:
            self._fail("decode_error", "Invalid identity token format", e)
        except InvalidTokenError as e:
            self._fail("invalid_token", "Invalid identity token", e)

        if payload.get("iss") not in self.issuers:
            self._fail("invalid_issuer", "Invalid identity token issuer")

        sub = payload.get("sub")
        if not sub or not isinstance(sub, str):
            self._fail("missing_sub", "Invalid identity token: missing sub")

        return _claims_from_payload(payload)

    def _get_signing_key(self, token: str) -> Any:
        """Look up the signing key by kid, refetching the key set once on a miss."""
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except DecodeError as e:
            self._fail("decode_error", "Invalid identity token format", e)
        if not kid:
            self._fail("missing_kid", "Invalid identity token: missing key id")

        signing_key = self._find_signing_key(kid)
        if signing_key is not None:
            return signing_key

        logger.info("identity_jwks_refresh", provider=self.provider, reason="kid_miss")
        self._refresh_jwks()

        signing_key = self._find_signing_key(kid)
        if signing_key is None:
            self._fail("kid_not_found", "Invalid identity token: signing key not found")
        return signing_key

    def _find_signing_key(self, kid: str) -> Any | None:
        """Return the key with this kid from the provider key set, or None.

        A key set that cannot be fetched (or holds no signing keys) means the
        provider is unavailable, not that the token is bad.
        """
        try:
            signing_keys = self._get_jwks_client().get_signing_keys()
        except PyJWKClientError as e:
            self._unavailable(e)

        for signing_key in signing_keys:
            if signing_key.key_id == kid:
                return signing_key
        return None

    def _fail(self, reason: str, message: str, cause: Exception | None = None) -> NoReturn:
        logger.warning("identity_token_rejected", provider=self.provider, reason=reason)
        raise ApiError(ApiErrorCode.E_INVALID_IDENTITY_TOKEN, message) from cause

    def _unavailable(self, cause: Exception) -> NoReturn:
        logger.warning(
            "identity_token_rejected",
            provider=self.provider,
            reason="jwks_unavailable",
            error=str(cause),
        )
        raise ApiError(
            ApiErrorCode.E_AUTH_UNAVAILABLE, "Authentication service unavailable"
        ) from cause


def _claims_from_payload(payload: dict[str, Any]) -> IdentityClaims:
    # Apple sends email_verified as the string "true"
    email_verified = payload.get("email_verified", False)
    if isinstance(email_verified, str):
        email_verified = email_verified.lower() == "true"

    return IdentityClaims(
        sub=payload["sub"],
        email=payload.get("email") or None,
        email_verified=bool(email_verified),
        name=payload.get("name") or None,
        picture=payload.get("picture") or None,
    )


def apple_verifier(audiences: Sequence[str]) -> JwksIdentityVerifier:
    return JwksIdentityVerifier(
        provider="apple",
        jwks_url=APPLE_JWKS_URL,
        issuers=APPLE_ISSUERS,
        audiences=audiences,
    )


def google_verifier(audiences: Sequence[str]) -> JwksIdentityVerifier:
    return JwksIdentityVerifier(
        provider="google",
        jwks_url=GOOGLE_JWKS_URL,
        issuers=GOOGLE_ISSUERS,
        audiences=audiences,
    )
