"""Tests for the push dispatch job.

Covers:
- Empty directory → noop pass with zero sends
- Per-user failure isolation (False result and raised exception)
- Personalization and message metadata on every send
- Directory failure aborts the pass without sending
- Single-flight guard skips an overlapping pass
- On-demand send_to_user()
"""

import threading
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from precious.db.models import ToneVariant
from precious.services.dispatch import (
    DEFAULT_PUSH_TITLE,
    MESSAGE_ID_DATA_KEY,
    DispatchJob,
    DispatchStatus,
)
from precious.services.messages import NAME_PLACEHOLDER
from tests.helpers import create_test_user
from tests.support.fake_push import BlockingPushGateway, FakePushGateway


@pytest.fixture
def three_users(session_factory):
    """Three push-eligible users in a fixed order of creation."""
    return [
        create_test_user(
            session_factory,
            email="anna@example.com",
            display_name="Анна",
            gender=ToneVariant.female,
            push_token="token-anna",
        ),
        create_test_user(
            session_factory,
            email="boris@example.com",
            display_name="Борис",
            gender=ToneVariant.male,
            push_token="token-boris",
        ),
        create_test_user(
            session_factory,
            email="sasha@example.com",
            display_name="Саша",
            gender=ToneVariant.neutral,
            push_token="token-sasha",
        ),
    ]


def _job(session_factory, message_bank, gateway) -> DispatchJob:
    return DispatchJob(session_factory, message_bank, gateway)


class TestRunPass:
    def test_empty_directory_is_noop(self, session_factory, message_bank, push_gateway):
        result = _job(session_factory, message_bank, push_gateway).run_pass()

        assert result.status == DispatchStatus.noop
        assert result.eligible == 0
        assert result.attempted == 0
        assert push_gateway.sent == []

    def test_ineligible_users_are_not_sent_to(self, session_factory, message_bank, push_gateway):
        create_test_user(session_factory, email="no-token@example.com")
        create_test_user(
            session_factory, email="off@example.com", push_token="token-off", push_enabled=False
        )

        result = _job(session_factory, message_bank, push_gateway).run_pass()

        assert result.status == DispatchStatus.noop
        assert push_gateway.sent == []

    def test_every_user_gets_one_personalized_send(
        self, session_factory, message_bank, push_gateway, three_users
    ):
        result = _job(session_factory, message_bank, push_gateway).run_pass(trigger="10:00")

        assert result.status == DispatchStatus.completed
        assert (result.eligible, result.attempted, result.succeeded, result.failed) == (3, 3, 3, 0)
        assert sorted(push_gateway.tokens) == ["token-anna", "token-boris", "token-sasha"]

        for push in push_gateway.sent:
            assert push.message.title == DEFAULT_PUSH_TITLE
            assert NAME_PLACEHOLDER not in push.message.body
            message_id = push.message.data[MESSAGE_ID_DATA_KEY]
            assert message_bank.get(message_id) is not None

    def test_message_matches_recipient_tone(
        self, session_factory, message_bank, push_gateway, three_users
    ):
        expected = {
            "token-anna": ToneVariant.female,
            "token-boris": ToneVariant.male,
            "token-sasha": ToneVariant.neutral,
        }
        job = _job(session_factory, message_bank, push_gateway)

        for _ in range(10):
            job.run_pass()

        for push in push_gateway.sent:
            message = message_bank.get(push.message.data[MESSAGE_ID_DATA_KEY])
            assert message.gender in (expected[push.token], ToneVariant.neutral)

    def test_failed_send_does_not_stop_the_pass(
        self, session_factory, message_bank, three_users
    ):
        gateway = FakePushGateway(fail_tokens={"token-boris"})

        result = _job(session_factory, message_bank, gateway).run_pass()

        assert result.status == DispatchStatus.completed
        assert (result.attempted, result.succeeded, result.failed) == (3, 2, 1)
        assert sorted(gateway.tokens) == ["token-anna", "token-boris", "token-sasha"]

    def test_raising_send_does_not_stop_the_pass(
        self, session_factory, message_bank, three_users
    ):
        gateway = FakePushGateway(raise_tokens={"token-boris"})

        result = _job(session_factory, message_bank, gateway).run_pass()

        assert result.status == DispatchStatus.completed
        assert (result.attempted, result.succeeded, result.failed) == (3, 2, 1)
        assert len(gateway.sent) == 3

    def test_directory_failure_aborts_before_any_send(self, message_bank, push_gateway):
        broken_factory = MagicMock()
        broken_factory.return_value.execute.side_effect = OperationalError(
            "SELECT", {}, Exception("database is down")
        )

        result = _job(broken_factory, message_bank, push_gateway).run_pass()

        assert result.status == DispatchStatus.failed
        assert result.attempted == 0
        assert push_gateway.sent == []

    def test_custom_title(self, session_factory, message_bank, push_gateway, three_users):
        job = DispatchJob(session_factory, message_bank, push_gateway, push_title="hello")

        job.run_pass()

        assert {push.message.title for push in push_gateway.sent} == {"hello"}


class TestSingleFlight:
    def test_overlapping_pass_is_skipped(self, session_factory, message_bank):
        create_test_user(session_factory, push_token="token-alice")
        gateway = BlockingPushGateway()
        job = _job(session_factory, message_bank, gateway)

        results = []
        first = threading.Thread(target=lambda: results.append(job.run_pass(trigger="10:00")))
        first.start()
        assert gateway.entered.wait(timeout=5)

        try:
            assert job.is_running
            overlapping = job.run_pass(trigger="15:00")
        finally:
            gateway.release.set()
            first.join(timeout=5)

        assert overlapping.status == DispatchStatus.skipped
        assert overlapping.attempted == 0
        assert results[0].status == DispatchStatus.completed
        assert gateway.tokens == ["token-alice"]
        assert not job.is_running

    def test_sequential_passes_both_run(self, session_factory, message_bank, push_gateway):
        create_test_user(session_factory, push_token="token-alice")
        job = _job(session_factory, message_bank, push_gateway)

        assert job.run_pass().status == DispatchStatus.completed
        assert job.run_pass().status == DispatchStatus.completed
        assert push_gateway.tokens == ["token-alice", "token-alice"]


class TestWaitForIdle:
    def test_idle_job_returns_immediately(self, session_factory, message_bank, push_gateway):
        job = _job(session_factory, message_bank, push_gateway)

        assert job.wait_for_idle(timeout_s=0.1) is True

    def test_waits_for_in_flight_pass(self, session_factory, message_bank):
        create_test_user(session_factory, push_token="token-alice")
        gateway = BlockingPushGateway()
        job = _job(session_factory, message_bank, gateway)

        running = threading.Thread(target=job.run_pass)
        running.start()
        assert gateway.entered.wait(timeout=5)

        try:
            assert job.wait_for_idle(timeout_s=0.05) is False
        finally:
            gateway.release.set()

        assert job.wait_for_idle(timeout_s=5) is True
        running.join(timeout=5)
        assert gateway.tokens == ["token-alice"]


class TestSendToUser:
    def test_returns_outcome_and_personalized_text(
        self, session_factory, message_bank, push_gateway
    ):
        user = create_test_user(
            session_factory, display_name="Маша", push_token="token-masha"
        )

        outcome = _job(session_factory, message_bank, push_gateway).send_to_user(user)

        assert outcome.sent is True
        assert outcome.text == push_gateway.sent[0].message.body
        assert NAME_PLACEHOLDER not in outcome.text
        assert push_gateway.sent[0].message.data == {MESSAGE_ID_DATA_KEY: outcome.message_id}

    def test_reports_provider_rejection(self, session_factory, message_bank):
        user = create_test_user(session_factory, push_token="token-stale")
        gateway = FakePushGateway(fail_tokens={"token-stale"})

        outcome = _job(session_factory, message_bank, gateway).send_to_user(user)

        assert outcome.sent is False
        assert outcome.text

    def test_requires_push_token(self, session_factory, message_bank, push_gateway):
        user = create_test_user(session_factory)

        with pytest.raises(ValueError):
            _job(session_factory, message_bank, push_gateway).send_to_user(user)

        assert push_gateway.sent == []
