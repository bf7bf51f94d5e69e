"""Push gateway: deliver one notification to one device token.

Provides:
- PushMessage: title/body/data payload
- PushGateway: abstract single-send interface
- FcmPushGateway: Firebase Cloud Messaging HTTP v1 implementation
- DisabledPushGateway: used when Firebase credentials are not configured
- build_push_gateway(): pick the implementation from settings

Contract:
- send() returns True on provider acceptance and False otherwise
- send() never raises for provider-side failures (bad token, HTTP error,
  timeout, credential failure); callers branch on the boolean
- every call is bounded by the configured timeout
- after close(), send() returns False without touching the network

FCM HTTP v1:
- Endpoint: POST https://fcm.googleapis.com/v1/projects/{project_id}/messages:send
- Auth: OAuth2 bearer token minted from a service account (scope firebase.messaging)
- Body: {"message": {"token", "notification": {"title", "body"}, "data": {str: str}}}
"""

import functools
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from precious.config import Settings
from precious.logging import get_logger

logger = get_logger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class PushMessage:
    """Notification payload. `data` values must be strings (FCM requirement)."""

    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


class PushError(Exception):
    """Internal push failure; converted to a False send result."""


class PushGateway(ABC):
    """Abstract single-notification sender."""

    @abstractmethod
    def send(self, token: str, message: PushMessage) -> bool:
        """Send one notification.

        Args:
            token: Device registration token.
            message: Notification payload.

        Returns:
            True if the provider accepted the message, False otherwise.
        """
        ...

    def close(self) -> None:
        """Release transport resources. Default: nothing to release."""
        return None


class DisabledPushGateway(PushGateway):
    """Gateway used when push credentials are absent. Every send fails softly."""

    def send(self, token: str, message: PushMessage) -> bool:
        logger.warning("push_disabled_skip", reason="firebase_not_configured")
        return False


class ServiceAccountTokenProvider:
    """Mint and cache OAuth2 access tokens for the FCM scope.

    google-auth credentials are not thread-safe to refresh concurrently, so
    refresh is serialized behind a lock. The token request is bounded by
    timeout_s like the FCM call itself.
    """

    def __init__(
        self,
        project_id: str,
        client_email: str,
        private_key: str,
        timeout_s: float = 10.0,
    ):
        self._credentials = service_account.Credentials.from_service_account_info(
            {
                "type": "service_account",
                "project_id": project_id,
                "client_email": client_email,
                "private_key": private_key,
                "token_uri": GOOGLE_TOKEN_URI,
            },
            scopes=[FCM_SCOPE],
        )
        self._request = functools.partial(GoogleAuthRequest(), timeout=timeout_s)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            if not self._credentials.valid:
                self._credentials.refresh(self._request)
            return self._credentials.token


class FcmPushGateway(PushGateway):
    """Firebase Cloud Messaging HTTP v1 sender."""

    def __init__(
        self,
        project_id: str,
        token_provider: Callable[[], str],
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the FCM gateway.

        Args:
            project_id: Firebase project id.
            token_provider: Returns a valid OAuth2 bearer token for the FCM scope.
            timeout_s: Per-call timeout covering connect, read, and write.
            http_client: Shared client; one is created (and owned) if omitted.
        """
        self.project_id = project_id
        self.timeout_s = timeout_s
        self._token_provider = token_provider
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client()
        self._closed = False

    @property
    def send_url(self) -> str:
        return FCM_SEND_URL.format(project_id=self.project_id)

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, token: str, message: PushMessage) -> bool:
        if self._closed:
            logger.warning("push_send_after_close")
            return False
        try:
            self._send(token, message)
        except PushError as e:
            logger.warning("push_send_rejected", error=str(e))
            return False
        except httpx.TimeoutException:
            logger.warning("push_send_timeout", timeout_s=self.timeout_s)
            return False
        except httpx.HTTPError as e:
            logger.warning("push_send_transport_error", error=str(e))
            return False
        except GoogleAuthError as e:
            logger.error("push_credentials_error", error=str(e))
            return False
        except RuntimeError as e:
            # httpx refuses requests once the client is closed
            if not self._client.is_closed:
                raise
            logger.warning("push_send_after_close", error=str(e))
            return False
        return True

    def _send(self, token: str, message: PushMessage) -> None:
        access_token = self._token_provider()
        body = {
            "message": {
                "token": token,
                "notification": {"title": message.title, "body": message.body},
                "data": {key: str(value) for key, value in message.data.items()},
            }
        }

        response = self._client.post(
            self.send_url,
            headers={"Authorization": f"Bearer {access_token}"},
            json=body,
            timeout=httpx.Timeout(self.timeout_s),
        )

        if response.status_code != 200:
            raise PushError(
                f"FCM returned {response.status_code}: {_fcm_error_status(response)}"
            )

    def close(self) -> None:
        """Refuse further sends and release the owned HTTP client."""
        self._closed = True
        if self._owns_client:
            self._client.close()


def _fcm_error_status(response: httpx.Response) -> str:
    """Extract the FCM error status (e.g. UNREGISTERED) from an error body."""
    try:
        error = response.json().get("error", {})
    except ValueError:
        return "unparseable error body"
    if not isinstance(error, dict):
        return "unknown"
    return str(error.get("status") or error.get("message") or "unknown")


def build_push_gateway(settings: Settings) -> PushGateway:
    """Create the gateway for the configured environment.

    Returns DisabledPushGateway when any Firebase credential is missing.
    """
    if not settings.firebase_configured:
        logger.warning("push_gateway_disabled", reason="firebase_not_configured")
        return DisabledPushGateway()

    try:
        token_provider = ServiceAccountTokenProvider(
            project_id=settings.firebase_project_id,  # type: ignore[arg-type]
            client_email=settings.firebase_client_email,  # type: ignore[arg-type]
            private_key=settings.normalized_firebase_private_key,  # type: ignore[arg-type]
            timeout_s=settings.push_timeout_s,
        )
    except (ValueError, GoogleAuthError) as e:
        logger.error("push_gateway_init_failed", error=str(e))
        return DisabledPushGateway()

    logger.info("push_gateway_initialized", project_id=settings.firebase_project_id)
    return FcmPushGateway(
        project_id=settings.firebase_project_id,  # type: ignore[arg-type]
        token_provider=token_provider,
        timeout_s=settings.push_timeout_s,
    )
