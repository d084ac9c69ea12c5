import copy

import pytest

from audiometry_trainer.errors import (
    AlreadyAtBoundary,
    InvalidPosition,
    NoActiveSession,
    ThresholdNotConfirmed,
)
from audiometry_trainer.procedures.interfaces import StaticReferenceProvider
from audiometry_trainer.procedures.ledger import ValidationReason
from audiometry_trainer.procedures.session import SessionManager, TestSession
from audiometry_trainer.procedures.types import (
    ConductionType,
    Ear,
    ProcedurePhase,
    ResponseStatus,
    SuggestedAction,
    TestPosition,
    ThresholdPoint,
)
from audiometry_trainer.utils.config import TrainerConfig


class CountingReferenceProvider:
    def __init__(self, points):
        self.points = list(points)
        self.calls = 0

    def get_thresholds(self, patient_id):
        self.calls += 1
        return list(self.points)


def test_operations_require_a_session():
    manager = SessionManager()

    with pytest.raises(NoActiveSession):
        manager.current_step
    with pytest.raises(NoActiveSession):
        manager.present_tone()
    with pytest.raises(NoActiveSession):
        manager.validate_threshold()
    with pytest.raises(RuntimeError):
        manager.snapshot()


def test_start_session_snapshot(manager):
    snap = manager.snapshot()

    assert snap.step_index == 0
    assert snap.total_steps == 32
    assert snap.position == TestPosition(1000, Ear.RIGHT, ConductionType.AIR)
    assert snap.current_level == 40
    assert snap.phase is ProcedurePhase.INITIAL
    assert snap.suggested_action is SuggestedAction.PRESENT
    assert snap.can_store_threshold is False
    assert snap.progress == 0
    assert "40 dB" in snap.guidance
    assert manager.active_sessions == [manager.session]


def test_at_least_one_route_required():
    with pytest.raises(ValueError):
        SessionManager().start_session("p", include_air_conduction=False,
                                       include_bone_conduction=False)


def test_present_tone_calls_player(manager, player):
    stamp = manager.present_tone()

    assert player.calls == [(1000, 40, Ear.RIGHT, ConductionType.AIR)]
    assert manager.session.tone_active
    assert manager.current_step.last_presented_at == stamp


def test_second_outcome_for_same_presentation_is_ignored(manager):
    manager.present_tone()
    first = manager.record_outcome(True)
    second = manager.record_outcome(True)

    assert first is not None
    assert second is None
    assert len(manager.current_step.responses) == 1
    assert manager.current_step.phase is ProcedurePhase.DESCENDING


def test_stale_presentation_time_is_ignored(manager):
    stamp = manager.present_tone()
    manager.record_outcome(False, presentation_time=stamp)

    assert manager.record_outcome(True, presentation_time=stamp - 0.5) is None
    assert len(manager.current_step.responses) == 1


def test_navigation_preserves_confirmed_thresholds(manager, confirm):
    confirm(manager, 35)
    first = manager.session.sequence[0]
    before = (first.completed, first.response_status, first.current_level, first.threshold_level)

    manager.skip()
    manager.adjust_frequency(+1)
    manager.jump_to(TestPosition(250, Ear.LEFT, ConductionType.AIR))
    manager.jump_to(TestPosition(1000, Ear.RIGHT, ConductionType.AIR), occurrence=1)
    manager.jump_to(TestPosition(1000, Ear.RIGHT, ConductionType.AIR))

    assert manager.session.cursor == 0
    assert (first.completed, first.response_status, first.current_level,
            first.threshold_level) == before
    assert manager.session.sequence[1].current_level == 40


def test_navigation_resumes_bracketing_where_it_left_off(manager, respond):
    respond(manager, False)
    respond(manager, True)
    step = manager.current_step
    state = step.to_dict()

    manager.skip()
    manager.previous()

    assert manager.current_step is step
    assert step.to_dict() == state


def test_store_without_confirmation_fails_and_leaves_step_untouched(manager, respond):
    respond(manager, False)
    respond(manager, True)
    before = manager.current_step.to_dict()

    with pytest.raises(ThresholdNotConfirmed) as exc_info:
        manager.store_threshold()

    assert exc_info.value.validation.reason is ValidationReason.NO_DATA
    assert manager.current_step.to_dict() == before


def test_store_uses_lowest_confirmed_level(manager):
    step = manager.current_step
    ledger = manager.controller.ledger
    for level, outcomes in [(55, [True, True]), (45, [True, False, True]), (40, [True, False])]:
        for heard in outcomes:
            ledger.record_response(step.position, level, heard, ProcedurePhase.THRESHOLD)
    manager.set_level(55)

    point = manager.store_threshold()

    assert point == ThresholdPoint(1000, Ear.RIGHT, ConductionType.AIR, 45,
                                   ResponseStatus.THRESHOLD)
    assert step.current_level == 45
    assert step.response_status is ResponseStatus.THRESHOLD
    assert step.phase is ProcedurePhase.COMPLETE
    assert manager.validate_threshold().is_valid


def test_previous_at_first_step_raises(manager):
    with pytest.raises(AlreadyAtBoundary):
        manager.previous()
    assert manager.session.cursor == 0


def test_skip_past_last_step_completes_session(manager):
    session = manager.session
    manager.jump_to(TestPosition(500, Ear.LEFT, ConductionType.BONE))
    assert session.cursor == len(session.sequence) - 1

    assert manager.skip() is None

    assert session.completed
    assert session.results is not None
    assert not manager.has_active_session
    assert manager.completed_sessions == [session]
    assert manager.get_session(session.id) is session


def test_skip_marks_nothing(manager):
    manager.skip()

    first = manager.session.sequence[0]
    assert not first.completed
    assert first.response_status is ResponseStatus.NONE
    assert manager.session.cursor == 1


def test_jump_to_unknown_position(air_manager):
    with pytest.raises(InvalidPosition):
        air_manager.jump_to(TestPosition(1000, Ear.RIGHT, ConductionType.BONE))
    with pytest.raises(InvalidPosition):
        air_manager.jump_to(TestPosition(1000, Ear.RIGHT, ConductionType.AIR), occurrence=2)


def test_jump_to_retest_occurrence(manager):
    step = manager.jump_to(TestPosition(1000, Ear.RIGHT, ConductionType.AIR), occurrence=1)

    assert manager.session.cursor == 7
    assert step.step_id == 8


def test_adjust_frequency_walks_same_ear_and_route(manager):
    step = manager.adjust_frequency(+1)
    assert (step.frequency, step.ear, step.conduction_type) == (1500, Ear.RIGHT, ConductionType.AIR)

    manager.jump_to(TestPosition(8000, Ear.RIGHT, ConductionType.AIR))
    with pytest.raises(AlreadyAtBoundary):
        manager.adjust_frequency(+1)

    manager.jump_to(TestPosition(250, Ear.RIGHT, ConductionType.AIR))
    with pytest.raises(AlreadyAtBoundary):
        manager.adjust_frequency(-1)
    assert manager.current_step.frequency == 250

    assert manager.adjust_frequency(+1).frequency == 500


def test_select_audiogram_point_snaps_to_nearest_frequency(manager):
    step = manager.select_audiogram_point(1900, 25)

    assert step.frequency == 2000
    assert step.current_level == 25
    assert manager.current_step is step


def test_level_is_clamped(manager):
    assert manager.set_level(200) == 120
    assert manager.adjust_level(-500) == -10


def test_level_change_after_store_reopens_bracketing(manager, confirm):
    confirm(manager, 40)
    manager.adjust_level(-5)

    step = manager.current_step
    assert step.phase is ProcedurePhase.THRESHOLD
    # The stored threshold stands until a new one is stored
    assert step.response_status is ResponseStatus.THRESHOLD


def test_apply_suggested_action(manager):
    assert manager.apply_suggested_action() is SuggestedAction.PRESENT
    assert manager.current_step.current_level == 40

    manager.present_tone()
    manager.record_outcome(False)
    assert manager.apply_suggested_action() is SuggestedAction.INCREASE
    assert manager.current_step.current_level == 50


def test_progress_counts_unique_positions(manager, confirm):
    confirm(manager, 30)
    manager.skip()
    confirm(manager, 35)

    assert manager.progress() == round(2 / 28 * 100)
    assert manager.snapshot().progress == 7


def test_progress_counts_retest_once(manager, confirm):
    confirm(manager, 30)
    manager.jump_to(TestPosition(1000, Ear.RIGHT, ConductionType.AIR), occurrence=1)
    confirm(manager, 30)

    assert manager.progress() == 4


def test_progress_scope(clock, confirm):
    enabled = SessionManager(TrainerConfig(include_bone_conduction=False), clock=clock)
    full = SessionManager(TrainerConfig(include_bone_conduction=False, progress_scope='full'),
                          clock=clock)
    for mgr in (enabled, full):
        mgr.start_session("p")
        confirm(mgr, 30)
        mgr.skip()
        confirm(mgr, 30)

    assert enabled.progress() == 10
    assert full.progress() == 7


def test_progress_reaches_100_only_when_all_confirmed(manager, confirm):
    session = manager.session
    values = []
    for index in range(len(session.sequence)):
        session.cursor = index
        if index == len(session.sequence) - 1:
            assert manager.progress() < 100
        confirm(manager, 20)
        values.append(manager.progress())

    assert values == sorted(values)
    assert values[-1] == 100


def test_mark_no_response(manager):
    manager.set_level(120)
    point = manager.mark_no_response()

    step = manager.current_step
    assert point.response_status is ResponseStatus.NO_RESPONSE
    assert point.hearing_level == 120
    assert step.completed
    assert step.phase is ProcedurePhase.COMPLETE
    assert step.suggested_action is SuggestedAction.NEXT
    assert manager.progress() == 0


def test_complete_session_scores_against_reference(clock, confirm):
    reference = [ThresholdPoint(1000, Ear.RIGHT, ConductionType.AIR, 30, ResponseStatus.THRESHOLD)]
    provider = CountingReferenceProvider(reference)
    manager = SessionManager(reference_provider=provider, clock=clock)
    session = manager.start_session("p")
    confirm(manager, 35)
    manager.register_false_positive()

    result = manager.complete_session()

    assert provider.calls == 1
    assert result.accuracy == pytest.approx(75.0)
    assert result.false_positive_count == 1
    assert result.completion.tested == 1
    assert result.completion.total == 28
    assert session.sequence[1].response_status is ResponseStatus.NOT_TESTED
    assert session.end_time is not None
    assert manager.active_sessions == []
    with pytest.raises(NoActiveSession):
        manager.session


def test_external_false_positive_count_replaces_internal(manager):
    manager.register_false_positive()
    result = manager.complete_session(false_positives=4)

    assert result.false_positive_count == 4


def test_sessions_are_independent(clock):
    manager = SessionManager(clock=clock)
    first = manager.start_session("a")
    manager.set_level(70)
    second = manager.start_session("b")

    assert manager.session is second
    assert second.sequence[0].current_level == 40
    assert {s.id for s in manager.active_sessions} == {first.id, second.id}

    manager.resume_session(first)
    assert manager.current_step.current_level == 70


def test_resume_serialized_session_mid_bracketing(manager, respond):
    for heard in (False, True, False, True):
        respond(manager, heard)
    restored = TestSession.from_dict(manager.session.to_dict())

    other = SessionManager(clock=copy.copy(manager.clock))
    other.resume_session(restored)

    for mgr in (manager, other):
        respond(mgr, False)
        respond(mgr, True)
    assert other.current_step.to_dict() == manager.current_step.to_dict()
    assert other.controller.ledger.to_dict() == manager.controller.ledger.to_dict()


def test_clear_sessions(manager):
    manager.clear_sessions()

    assert manager.active_sessions == []
    assert not manager.has_active_session


def test_resume_without_saved_stamp_uses_step_stamps(manager, respond):
    for heard in (False, True):
        respond(manager, heard)
    data = manager.session.to_dict()
    del data['last_stamp']

    other = SessionManager()
    other.resume_session(TestSession.from_dict(data))

    assert other.present_tone() > manager.current_step.last_presentation_time
    assert other.record_outcome(False) is not None


def test_retest_needs_its_own_bracketing(manager, confirm):
    confirm(manager, 40)
    retest = manager.jump_to(TestPosition(1000, Ear.RIGHT, ConductionType.AIR), occurrence=1)

    assert not manager.can_store_threshold()
    assert manager.snapshot().can_store_threshold is False
    with pytest.raises(ThresholdNotConfirmed) as exc_info:
        manager.store_threshold()
    assert exc_info.value.validation.reason is ValidationReason.NO_DATA
    assert not retest.completed
    assert retest.response_status is ResponseStatus.NONE

    point = confirm(manager, 40)

    assert point.hearing_level == 40
    assert retest.completed


def test_first_occurrence_does_not_need_its_own_bracketing(manager):
    ledger = manager.controller.ledger
    for _ in range(2):
        ledger.record_response(manager.current_step.position, 45, True, ProcedurePhase.THRESHOLD)

    assert manager.can_store_threshold()
    assert manager.store_threshold().hearing_level == 45


def test_unchanged_level_keeps_a_stored_threshold_closed(manager, confirm):
    confirm(manager, 40)
    step = manager.current_step

    manager.set_level(40)
    manager.adjust_level(0)
    manager.select_audiogram_point(1000, 40)

    assert step.phase is ProcedurePhase.COMPLETE
    assert step.suggested_action is SuggestedAction.NEXT


def test_clamped_level_change_is_not_a_change(manager):
    manager.set_level(120)
    manager.mark_no_response()
    step = manager.current_step

    manager.adjust_level(+5)

    assert step.current_level == 120
    assert step.phase is ProcedurePhase.COMPLETE


def test_static_reference_provider_defaults_to_no_patients():
    provider = StaticReferenceProvider()

    assert provider.get_thresholds("p") == []
    provider.add_patient("p", [ThresholdPoint(1000, Ear.RIGHT, ConductionType.AIR, 20,
                                              ResponseStatus.THRESHOLD)])
    assert len(provider.get_thresholds("p")) == 1
