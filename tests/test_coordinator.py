from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import pytest

from assurance_cli.exceptions import InvalidInputError, PersistenceError
from assurance_cli.models.maturity import MaturityAssessment
from assurance_cli.models.risks import Impact, Likelihood, RiskAssessment, RiskLevel
from assurance_cli.session.coordinator import (
    EditSessionCoordinator,
    SessionState,
    SessionStatus,
)
from assurance_cli.session.rules import MaturityAssessmentRules, RiskAssessmentRules

_QUIET = 0.02


class _Store:
    """In-memory persist target recording every snapshot it receives."""

    def __init__(self, failures: Optional[List[Exception]] = None) -> None:
        self.calls: List[object] = []
        self.failures = list(failures or [])
        self.gate: Optional[asyncio.Event] = None

    async def persist(self, snapshot: object) -> None:
        self.calls.append(snapshot)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        return None


def _risk_session(store: _Store, **kwargs: object) -> EditSessionCoordinator[RiskAssessment]:
    kwargs.setdefault("debounce_delay", _QUIET)
    return EditSessionCoordinator(RiskAssessmentRules(), store.persist, **kwargs)  # type: ignore[arg-type]


class TestDebounce:
    def test_edits_within_quiet_period_coalesce(self) -> None:
        store = _Store()

        async def scenario() -> SessionState:
            session = _risk_session(store)
            for value in ("Rare", "Unlikely", "Possible", "Likely", "Almost Certain"):
                session.update_field("likelihood", value)
            await asyncio.sleep(_QUIET * 10)
            return session.get_session_status()

        state = asyncio.run(scenario())
        assert len(store.calls) == 1
        assert store.calls[0].likelihood is Likelihood.ALMOST_CERTAIN
        assert state.status is SessionStatus.CLEAN
        assert state.has_unsaved_changes is False

    def test_status_is_dirty_until_quiet_period_ends(self) -> None:
        store = _Store()

        async def scenario() -> None:
            session = _risk_session(store, debounce_delay=10.0)
            session.update_field("impact", "Low")
            state = session.get_session_status()
            assert state.status is SessionStatus.DIRTY
            assert state.has_unsaved_changes is True
            assert state.version == 1
            session.close()

        asyncio.run(scenario())
        assert store.calls == []

    def test_close_cancels_pending_save(self) -> None:
        store = _Store()

        async def scenario() -> None:
            session = _risk_session(store)
            session.update_field("impact", "Low")
            session.close()
            await asyncio.sleep(_QUIET * 5)

        asyncio.run(scenario())
        assert store.calls == []

    def test_submit_saves_without_waiting(self) -> None:
        store = _Store()

        async def scenario() -> SessionState:
            session = _risk_session(store, debounce_delay=10.0)
            session.update_field("title", "Lost laptop")
            state = await session.submit()
            session.close()
            return state

        state = asyncio.run(scenario())
        assert len(store.calls) == 1
        assert state.status is SessionStatus.CLEAN

    def test_submit_with_nothing_to_save(self) -> None:
        store = _Store()

        async def scenario() -> SessionState:
            return await _risk_session(store).submit()

        assert asyncio.run(scenario()).status is SessionStatus.CLEAN
        assert store.calls == []


class TestSingleFlight:
    def test_edits_during_save_are_saved_once_afterwards(self) -> None:
        store = _Store()

        async def scenario() -> EditSessionCoordinator[RiskAssessment]:
            store.gate = asyncio.Event()
            session = _risk_session(store)
            session.update_field("likelihood", "Likely")
            await asyncio.sleep(_QUIET * 3)
            assert session.get_session_status().status is SessionStatus.SAVING

            session.update_field("impact", "Low")
            session.update_field("impact", "Very High")
            await asyncio.sleep(_QUIET * 3)
            assert len(store.calls) == 1

            store.gate.set()
            await asyncio.sleep(_QUIET * 10)
            return session

        session = asyncio.run(scenario())
        assert len(store.calls) == 2
        assert store.calls[1].impact is Impact.VERY_HIGH
        assert store.calls[1].likelihood is Likelihood.LIKELY
        assert session.get_session_status().status is SessionStatus.CLEAN
        assert session.get_working_copy().impact is Impact.VERY_HIGH

    def test_persisted_result_adopted_when_no_newer_edits(self) -> None:
        async def persist(snapshot: RiskAssessment) -> RiskAssessment:
            stored = RiskAssessment(**vars(snapshot))
            stored.id = 99
            return stored

        async def scenario() -> EditSessionCoordinator[RiskAssessment]:
            session = EditSessionCoordinator(RiskAssessmentRules(), persist, debounce_delay=_QUIET)
            session.update_field("title", "New risk")
            await session.submit()
            return session

        session = asyncio.run(scenario())
        assert session.get_working_copy().id == 99
        assert session.get_last_persisted().id == 99

    def test_returned_derived_fields_are_reconciled(self) -> None:
        async def persist(snapshot: RiskAssessment) -> RiskAssessment:
            stored = RiskAssessment(**vars(snapshot))
            stored.inherent_risk = RiskLevel.LOW
            stored.residual_risk = RiskLevel.VERY_HIGH
            return stored

        async def scenario() -> EditSessionCoordinator[RiskAssessment]:
            session = EditSessionCoordinator(RiskAssessmentRules(), persist, debounce_delay=_QUIET)
            session.update_field("likelihood", "Likely")
            session.update_field("impact", "High")
            await session.submit()
            return session

        session = asyncio.run(scenario())
        for entity in (session.get_working_copy(), session.get_last_persisted()):
            assert entity.inherent_risk is RiskLevel.HIGH
            assert entity.residual_risk is RiskLevel.VERY_HIGH
            assert entity.residual_risk_is_manual is True


class TestStaleResults:
    def test_reset_discards_in_flight_success(self, caplog: pytest.LogCaptureFixture) -> None:
        store = _Store()

        async def scenario() -> EditSessionCoordinator[RiskAssessment]:
            store.gate = asyncio.Event()
            session = _risk_session(store)
            session.update_field("likelihood", "Almost Certain")
            await asyncio.sleep(_QUIET * 3)
            assert session.get_session_status().status is SessionStatus.SAVING

            session.reset_to_last_persisted()
            assert session.get_session_status().status is SessionStatus.CLEAN
            store.gate.set()
            await asyncio.sleep(_QUIET * 3)
            return session

        with caplog.at_level(logging.DEBUG, logger="assurance_cli.session"):
            session = asyncio.run(scenario())

        assert session.get_working_copy().likelihood is Likelihood.POSSIBLE
        assert session.get_last_persisted().likelihood is Likelihood.POSSIBLE
        assert session.get_session_status().status is SessionStatus.CLEAN
        assert "Discarding stale save result" in caplog.text

    def test_reset_discards_in_flight_failure(self) -> None:
        store = _Store(failures=[RuntimeError("boom")])

        async def scenario() -> SessionState:
            store.gate = asyncio.Event()
            session = _risk_session(store)
            session.update_field("impact", "Low")
            await asyncio.sleep(_QUIET * 3)
            session.reset_to_last_persisted()
            store.gate.set()
            await asyncio.sleep(_QUIET * 3)
            return session.get_session_status()

        state = asyncio.run(scenario())
        assert state.status is SessionStatus.CLEAN
        assert state.last_error is None

    def test_edit_after_reset_waits_for_stale_save(self) -> None:
        store = _Store()

        async def scenario() -> EditSessionCoordinator[RiskAssessment]:
            store.gate = asyncio.Event()
            session = _risk_session(store)
            session.update_field("likelihood", "Almost Certain")
            await asyncio.sleep(_QUIET * 3)
            session.reset_to_last_persisted()
            session.update_field("impact", "Low")
            await asyncio.sleep(_QUIET * 3)
            assert len(store.calls) == 1

            store.gate.set()
            await asyncio.sleep(_QUIET * 5)
            return session

        session = asyncio.run(scenario())
        assert len(store.calls) == 2
        assert store.calls[1].likelihood is Likelihood.POSSIBLE
        assert store.calls[1].impact is Impact.LOW
        assert session.get_last_persisted().impact is Impact.LOW
        assert session.get_session_status().status is SessionStatus.CLEAN


class TestFailures:
    def test_failure_keeps_session_dirty_without_retry(self) -> None:
        cause = RuntimeError("disk full")
        store = _Store(failures=[cause])

        async def scenario() -> SessionState:
            session = _risk_session(store)
            session.update_field("title", "Vendor breach")
            await asyncio.sleep(_QUIET * 10)
            return session.get_session_status()

        state = asyncio.run(scenario())
        assert len(store.calls) == 1
        assert state.status is SessionStatus.DIRTY
        assert state.has_unsaved_changes is True
        assert isinstance(state.last_error, PersistenceError)
        assert state.last_error.__cause__ is cause
        assert "disk full" in str(state.last_error)

    def test_submit_retries_after_failure(self) -> None:
        store = _Store(failures=[RuntimeError("offline")])

        async def scenario() -> SessionState:
            session = _risk_session(store)
            session.update_field("title", "Vendor breach")
            await asyncio.sleep(_QUIET * 5)
            return await session.submit()

        state = asyncio.run(scenario())
        assert len(store.calls) == 2
        assert state.status is SessionStatus.CLEAN
        assert state.last_error is None

    def test_edit_after_failure_schedules_new_save(self) -> None:
        store = _Store(failures=[RuntimeError("offline")])

        async def scenario() -> SessionState:
            session = _risk_session(store)
            session.update_field("title", "Vendor breach")
            await asyncio.sleep(_QUIET * 5)
            session.update_field("risk_owner", "CFO")
            await asyncio.sleep(_QUIET * 5)
            return session.get_session_status()

        state = asyncio.run(scenario())
        assert len(store.calls) == 2
        assert store.calls[1].risk_owner == "CFO"
        assert state.status is SessionStatus.CLEAN

    def test_persistence_error_passed_through(self) -> None:
        error = PersistenceError("Cannot write risk.yaml")
        store = _Store(failures=[error])

        async def scenario() -> SessionState:
            session = _risk_session(store)
            session.update_field("notes", "x")
            return await session.submit()

        assert asyncio.run(scenario()).last_error is error


class TestOverrides:
    def test_manual_residual_survives_and_resets(self) -> None:
        store = _Store()

        async def scenario() -> EditSessionCoordinator[RiskAssessment]:
            session = _risk_session(store, debounce_delay=10.0)
            session.update_field("residual_risk", "Very High")
            session.update_field("control_effectiveness", "Partially Effective")
            working = session.get_working_copy()
            assert working.residual_risk is RiskLevel.VERY_HIGH
            assert working.residual_risk_is_manual is True

            session.set_manual_override("residual_risk", False)
            working = session.get_working_copy()
            assert working.residual_risk is RiskLevel.MEDIUM
            assert working.residual_risk_is_manual is False
            await session.submit()
            return session

        asyncio.run(scenario())
        assert store.calls[-1].residual_risk is RiskLevel.MEDIUM

    def test_end_to_end_derivation(self) -> None:
        store = _Store()

        async def scenario() -> RiskAssessment:
            session = _risk_session(store)
            session.update_field("likelihood", "Likely")
            session.update_field("impact", "High")
            session.update_field("control_effectiveness", "Effective")
            await session.submit()
            return session.get_last_persisted()

        persisted = asyncio.run(scenario())
        assert persisted.inherent_risk is RiskLevel.HIGH
        assert persisted.residual_risk is RiskLevel.LOW

    def test_invalid_edit_leaves_session_clean(self) -> None:
        store = _Store()
        session = _risk_session(store)
        with pytest.raises(InvalidInputError):
            session.update_field("impact", "Huge")
        state = session.get_session_status()
        assert state.status is SessionStatus.CLEAN
        assert state.version == 0
        assert session.get_working_copy().impact is Impact.HIGH

    def test_loaded_record_with_pinned_residual(self) -> None:
        store = _Store()
        loaded = RiskAssessment(residual_risk=RiskLevel.HIGH)
        session = _risk_session(store, load_initial=lambda: loaded)
        assert session.get_working_copy().residual_risk_is_manual is True
        assert loaded.residual_risk_is_manual is False

    def test_working_copy_is_a_copy(self) -> None:
        session = _risk_session(_Store())
        session.get_working_copy().title = "changed"
        assert session.get_working_copy().title == ""


class TestMaturitySession:
    def test_level_edits_drive_score(self) -> None:
        store = _Store()
        states: List[SessionStatus] = []

        async def scenario() -> MaturityAssessment:
            session = EditSessionCoordinator(
                MaturityAssessmentRules("E8-3"),
                store.persist,
                debounce_delay=_QUIET,
                on_change=lambda state: states.append(state.status),
            )
            session.set_level_achievement(1, True)
            session.set_level_achievement(3, True)
            await asyncio.sleep(_QUIET * 5)
            return session.get_last_persisted()

        persisted = asyncio.run(scenario())
        assert len(store.calls) == 1
        assert persisted.control_id == "E8-3"
        assert persisted.maturity_score == 1
        assert states[0] is SessionStatus.DIRTY
        assert SessionStatus.SAVING in states
        assert states[-1] is SessionStatus.CLEAN
