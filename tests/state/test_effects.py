"""Unit tests for the effect bus and error taxonomy.

This module tests:
- EffectBus: delivery order, unsubscribe, failing handlers
- auth_expired / report_failure: redirect vs toast
- describe_error, classify, is_transient, as_*_failed normalization
"""

import asyncio

from ezclient.exceptions import (
    APIError,
    AuthError,
    ConnectionError,
    IntegrationError,
    MalformedResponseError,
    NotFoundError,
    ServerError,
    TimeoutError,
    ValidationError,
)
from ezclient.config import Settings
from ezclient.session import Session
from ezstate.effects import EffectBus, RedirectToLogin, Toast, ToastLevel
from ezstate.errors import (
    GENERIC_MUTATION_MESSAGE,
    NETWORK_MESSAGE,
    TIMEOUT_MESSAGE,
    ErrorKind,
    LoadFailed,
    MutationFailed,
    as_load_failed,
    as_mutation_failed,
    classify,
    describe_error,
    is_transient,
)
from tests.fixtures.state import EffectRecorder


# =============================================================================
# EffectBus
# =============================================================================


class TestEffectBus:
    """Tests for effect fan-out."""

    def test_handlers_receive_effects_in_order(self, effects: EffectBus) -> None:
        first: list = []
        second: list = []
        effects.subscribe(first.append)
        effects.subscribe(second.append)

        toast = effects.success("Saved")

        assert first == [toast]
        assert second == [toast]
        assert toast.level == ToastLevel.SUCCESS
        assert toast.duration == 4.0

    def test_unsubscribe(self, effects: EffectBus) -> None:
        seen: list = []
        unsubscribe = effects.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        effects.error("ignored")

        assert seen == []

    def test_failing_handler_is_isolated(self, effects: EffectBus) -> None:
        seen: list = []

        def broken(effect) -> None:
            raise RuntimeError("renderer crashed")

        effects.subscribe(broken)
        effects.subscribe(seen.append)
        effects.info("New message", title="Chat")

        assert len(seen) == 1
        assert isinstance(seen[0], Toast)
        assert seen[0].title == "Chat"


class TestAuthExpired:
    """Tests for credential expiry handling."""

    def test_clears_session_and_redirects(
        self, effects: EffectBus, session: Session, recorder: EffectRecorder
    ) -> None:
        cleared: list = []
        session.on_clear(cleared.append)

        effect = effects.auth_expired(session, AuthError("Unauthenticated.", status_code=401))

        assert session.is_authenticated is False
        assert cleared == [session]
        assert isinstance(effect, RedirectToLogin)
        assert effect.reason == "Unauthenticated."
        assert effect.target == "/auth/login"

    def test_without_session(self, effects: EffectBus, recorder: EffectRecorder) -> None:
        effects.auth_expired(None, AuthError(""))

        assert recorder.redirects[0].reason == "Please log in again."


class TestReportFailure:
    """Tests for turning exceptions into feedback."""

    def test_api_error_toasts_backend_message(
        self, effects: EffectBus, recorder: EffectRecorder
    ) -> None:
        failure = effects.report_failure(APIError("Project is closed", 422), "Failed to save project.")

        assert isinstance(failure, MutationFailed)
        assert recorder.errors == ["Project is closed"]

    def test_reading_produces_load_failed(
        self, effects: EffectBus, recorder: EffectRecorder
    ) -> None:
        failure = effects.report_failure(
            MalformedResponseError("bad", 200), "Failed to load cards.", reading=True
        )

        assert isinstance(failure, LoadFailed)
        assert recorder.errors == ["Failed to load cards."]

    def test_auth_error_redirects_without_toast(
        self, effects: EffectBus, session: Session, recorder: EffectRecorder
    ) -> None:
        effects.report_failure(AuthError("Unauthenticated.", 401), "x", session=session)

        assert recorder.toasts == []
        assert len(recorder.redirects) == 1
        assert session.token is None


# =============================================================================
# Error taxonomy
# =============================================================================


class TestDescribeError:
    """Tests for user-facing message selection."""

    def test_backend_message_wins(self) -> None:
        assert describe_error(APIError("Card expired", 400), "fallback") == "Card expired"

    def test_blank_backend_message_uses_fallback(self) -> None:
        assert describe_error(APIError("", 400), "fallback") == "fallback"

    def test_timeout_and_network_wording(self) -> None:
        assert describe_error(TimeoutError("slow", timeout=5.0)) == TIMEOUT_MESSAGE
        assert describe_error(asyncio.TimeoutError()) == TIMEOUT_MESSAGE
        assert describe_error(ConnectionError("refused")) == NETWORK_MESSAGE

    def test_malformed_response_uses_fallback(self) -> None:
        assert describe_error(MalformedResponseError("<html>", 502), "Try later") == "Try later"

    def test_unknown_exception_uses_generic(self) -> None:
        assert describe_error(KeyError("x")) == GENERIC_MUTATION_MESSAGE

    def test_operation_failed_passes_through(self) -> None:
        assert describe_error(MutationFailed("already normalized")) == "already normalized"


class TestClassify:
    """Tests for mapping exceptions onto error kinds."""

    def test_kinds(self) -> None:
        assert classify(ValidationError("Name is required")) == ErrorKind.VALIDATION
        assert classify(AuthError("expired", 401)) == ErrorKind.AUTH
        assert classify(IntegrationError("declined")) == ErrorKind.INTEGRATION
        assert classify(NotFoundError("gone")) == ErrorKind.MUTATION
        assert classify(NotFoundError("gone"), reading=True) == ErrorKind.LOAD
        assert classify(LoadFailed("x")) == ErrorKind.LOAD

    def test_transient_failures(self) -> None:
        assert is_transient(ServerError("down", 503)) is True
        assert is_transient(ConnectionError("refused")) is True
        assert is_transient(asyncio.TimeoutError()) is True
        assert is_transient(APIError("bad input", 422)) is False

    def test_normalization_keeps_cause(self) -> None:
        cause = ServerError("Internal Server Error", 500)

        failure = as_mutation_failed(cause)

        assert failure.cause is cause
        assert failure.transient is True
        assert as_mutation_failed(failure) is failure
        assert as_load_failed(cause).kind == ErrorKind.LOAD


class TestEffectBusFromSettings:
    """Tests for building a bus from Settings."""

    def test_toast_duration_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("EZSUB_TOAST_DURATION", "7.5")
        bus = EffectBus.from_settings(Settings(_env_file=None))
        seen: list = []
        bus.subscribe(seen.append)

        bus.success("Card added successfully!")

        assert seen[0].duration == 7.5
