"""Push dispatch job: send today's nudge to every push-eligible user.

One pass:
1. Query the user directory for push-eligible users
2. No users → finish immediately with status "noop" (not an error)
3. For each user, independently: select a message for the user's tone
   variant, personalize it with the display name, send it through the push
   gateway with the message id as data, and record the outcome
4. Every eligible user is attempted exactly once; no retries within a pass

Failure policy:
- Directory query failure aborts the pass before any send (status "failed")
- A single user's failed or raising send is logged with the user id and the
  pass moves on to the next user
- run_pass() never raises; it reports aggregate counts in DispatchResult

Overlap:
- A single-flight guard allows one pass at a time per job. A pass triggered
  while another is still running returns immediately with status "skipped".
- wait_for_idle() lets shutdown wait (bounded) for an in-flight pass before
  the push gateway is closed

The on-demand send_to_user() path shares _deliver() with the pass, so a
"send me a test notification" request behaves exactly like a scheduled send.
"""

import threading
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from precious.db.models import ToneVariant
from precious.db.session import session_scope
from precious.logging import clear_pass_context, get_logger, set_pass_context
from precious.services.messages import MessageBank, personalize
from precious.services.push import PushGateway, PushMessage
from precious.services.users import PushRecipient, list_push_eligible_users

logger = get_logger(__name__)

DEFAULT_PUSH_TITLE = "precious.you"
SHUTDOWN_DRAIN_TIMEOUT_S = 30.0
MESSAGE_ID_DATA_KEY = "messageId"


class Recipient(Protocol):
    """Anything with the fields needed to personalize and address a push."""

    id: UUID
    display_name: str
    push_token: str | None

    @property
    def tone_variant(self) -> ToneVariant: ...


class DispatchStatus(str, Enum):
    """How a pass ended."""

    noop = "noop"  # no eligible users, nothing attempted
    completed = "completed"  # every eligible user attempted
    failed = "failed"  # directory query failed, nothing attempted
    skipped = "skipped"  # another pass was already running


@dataclass(frozen=True)
class SendOutcome:
    """Result of one personalized send."""

    sent: bool
    message_id: str
    text: str


@dataclass(frozen=True)
class DispatchResult:
    """Aggregate outcome of one pass."""

    pass_id: str
    status: DispatchStatus
    eligible: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    duration_ms: int = 0

    @property
    def attempted_sends(self) -> bool:
        return self.attempted > 0


class DispatchJob:
    """Scheduled and on-demand motivational push sender."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        message_bank: MessageBank,
        push_gateway: PushGateway,
        push_title: str = DEFAULT_PUSH_TITLE,
    ):
        """Wire the job to its collaborators.

        Args:
            session_factory: Opens short-lived sessions for the eligibility query.
            message_bank: Immutable catalog used for selection.
            push_gateway: Single-send delivery.
            push_title: Notification title shown on the device.
        """
        self._session_factory = session_factory
        self._message_bank = message_bank
        self._push_gateway = push_gateway
        self._push_title = push_title
        self._pass_lock = threading.Lock()

    @property
    def message_bank(self) -> MessageBank:
        return self._message_bank

    @property
    def push_gateway(self) -> PushGateway:
        return self._push_gateway

    @property
    def is_running(self) -> bool:
        return self._pass_lock.locked()

    def wait_for_idle(self, timeout_s: float = SHUTDOWN_DRAIN_TIMEOUT_S) -> bool:
        """Block until no pass is in flight, or until timeout_s elapses.

        Shutdown calls this before closing the push gateway so a running pass
        finishes its sends.

        Returns:
            True if the job is idle, False if a pass was still running at timeout.
        """
        if not self._pass_lock.acquire(timeout=timeout_s):
            return False
        self._pass_lock.release()
        return True

    def run_pass(self, trigger: str | None = None) -> DispatchResult:
        """Run one dispatch pass over all push-eligible users.

        Args:
            trigger: Label of the schedule entry that fired (for logs only).

        Returns:
            DispatchResult with status and counts. Never raises.
        """
        pass_id = str(uuid4())

        if not self._pass_lock.acquire(blocking=False):
            logger.warning(
                "dispatch_pass_skipped", pass_id=pass_id, trigger=trigger, reason="pass_in_flight"
            )
            return DispatchResult(pass_id=pass_id, status=DispatchStatus.skipped)

        set_pass_context(pass_id, trigger)
        started = time.monotonic()
        try:
            return self._run_pass(pass_id, started)
        finally:
            clear_pass_context()
            self._pass_lock.release()

    def _run_pass(self, pass_id: str, started: float) -> DispatchResult:
        logger.info("dispatch_pass_started", started_at=datetime.now(UTC).isoformat())

        try:
            with session_scope(self._session_factory) as db:
                recipients = list_push_eligible_users(db)
        except Exception as e:
            logger.exception("dispatch_pass_failed", reason="directory_query_failed", error=str(e))
            return DispatchResult(
                pass_id=pass_id,
                status=DispatchStatus.failed,
                duration_ms=_elapsed_ms(started),
            )

        if not recipients:
            logger.info("dispatch_pass_noop", eligible=0)
            return DispatchResult(
                pass_id=pass_id,
                status=DispatchStatus.noop,
                duration_ms=_elapsed_ms(started),
            )

        logger.info("dispatch_pass_sending", eligible=len(recipients))

        attempted = succeeded = failed = 0
        for recipient in recipients:
            attempted += 1
            if self._send_isolated(recipient):
                succeeded += 1
            else:
                failed += 1

        result = DispatchResult(
            pass_id=pass_id,
            status=DispatchStatus.completed,
            eligible=len(recipients),
            attempted=attempted,
            succeeded=succeeded,
            failed=failed,
            duration_ms=_elapsed_ms(started),
        )
        logger.info(
            "dispatch_pass_completed",
            eligible=result.eligible,
            attempted=result.attempted,
            succeeded=result.succeeded,
            failed=result.failed,
            duration_ms=result.duration_ms,
        )
        return result

    def _send_isolated(self, recipient: PushRecipient) -> bool:
        """Send to one user; any failure is logged and reported as False."""
        try:
            outcome = self._deliver(recipient)
        except Exception as e:
            logger.exception(
                "push_send_error", user_id=str(recipient.id), error_type=type(e).__name__
            )
            return False

        if outcome.sent:
            logger.info("push_sent", user_id=str(recipient.id), message_id=outcome.message_id)
        else:
            logger.warning(
                "push_send_failed", user_id=str(recipient.id), message_id=outcome.message_id
            )
        return outcome.sent

    def send_to_user(self, recipient: Recipient) -> SendOutcome:
        """Send one personalized message right now, outside any pass.

        The caller gets the outcome and the personalized text whether or not
        the provider accepted the message.

        Raises:
            ValueError: If the recipient has no push token.
        """
        if not recipient.push_token:
            raise ValueError("Recipient has no push token")

        outcome = self._deliver(recipient)
        logger.info(
            "push_on_demand",
            user_id=str(recipient.id),
            message_id=outcome.message_id,
            sent=outcome.sent,
        )
        return outcome

    def _deliver(self, recipient: Recipient) -> SendOutcome:
        message = self._message_bank.select_message(recipient.tone_variant)
        text = personalize(message.text, recipient.display_name)

        sent = self._push_gateway.send(
            recipient.push_token,  # type: ignore[arg-type]
            PushMessage(
                title=self._push_title,
                body=text,
                data={MESSAGE_ID_DATA_KEY: message.id},
            ),
        )
        return SendOutcome(sent=bool(sent), message_id=message.id, text=text)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
