"""
Session manager for a pure-tone audiometry training session.

A ``SessionManager`` owns the current ``TestSession``: the ordered steps, a
cursor into them, the response ledger and bookkeeping for the result
calculator. Every trainee interaction (present a tone, report the outcome,
move the level, navigate, store a threshold) is a method here; the read model
a UI needs after each of them comes from ``snapshot()``.
"""
# Standard library imports
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

# Local imports
from .hughson_westlake import HughsonWestlakeController, start_guidance
from .interfaces import ReferenceThresholdProvider, TonePlayer
from .ledger import ResponseLedger, ThresholdValidation, ValidationReason
from .sequence import build_test_sequence, frequencies_for, unique_positions
from .types import (
    ProcedurePhase,
    ResponseStatus,
    SuggestedAction,
    TestPosition,
    TestStep,
    ThresholdPoint,
    clamp_level,
)
from ..analysis.results import TestResult, calculate_results, extract_threshold_points
from ..errors import (
    AlreadyAtBoundary,
    DuplicatePresentation,
    InvalidPosition,
    NoActiveSession,
    ThresholdNotConfirmed,
)
from ..utils import round_half_up
from ..utils.clock import Clock, SequenceClock
from ..utils.config import TrainerConfig
from ..utils.defaults import FULL_PROTOCOL_POSITIONS

logger = logging.getLogger(__name__)


@dataclass
class TestSession:
    """The mutable session aggregate."""

    __test__ = False

    patient_id: str
    sequence: List[TestStep]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = field(default_factory=datetime.now)
    cursor: int = 0
    completed: bool = False
    ledger: ResponseLedger = field(default_factory=ResponseLedger)
    false_positive_count: int = 0
    tone_active: bool = False
    end_time: Optional[datetime] = None
    results: Optional[TestResult] = None
    last_stamp: Optional[float] = None

    @property
    def current_step(self) -> TestStep:
        return self.sequence[self.cursor]

    def newest_stamp(self) -> Optional[float]:
        """Latest presentation stamp issued or processed anywhere in the session."""
        stamps = [self.last_stamp] if self.last_stamp is not None else []
        for step in self.sequence:
            stamps.extend(t for t in (step.last_presented_at, step.last_presentation_time)
                          if t is not None)
        return max(stamps, default=None)

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'start_time': self.start_time.isoformat(),
            'end_time': None if self.end_time is None else self.end_time.isoformat(),
            'cursor': self.cursor,
            'completed': self.completed,
            'false_positive_count': self.false_positive_count,
            'tone_active': self.tone_active,
            'last_stamp': self.last_stamp,
            'sequence': [step.to_dict() for step in self.sequence],
            'ledger': self.ledger.to_dict(),
            'results': None if self.results is None else self.results.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        end_time = data.get('end_time')
        results = data.get('results')
        return cls(
            id=data['id'],
            patient_id=data['patient_id'],
            start_time=datetime.fromisoformat(data['start_time']),
            end_time=None if end_time is None else datetime.fromisoformat(end_time),
            cursor=int(data.get('cursor', 0)),
            completed=bool(data.get('completed', False)),
            false_positive_count=int(data.get('false_positive_count', 0)),
            tone_active=bool(data.get('tone_active', False)),
            last_stamp=data.get('last_stamp'),
            sequence=[TestStep.from_dict(s) for s in data['sequence']],
            ledger=ResponseLedger.from_dict(data.get('ledger', [])),
            results=None if results is None else TestResult.from_dict(results),
        )


@dataclass(frozen=True)
class TrainerSnapshot:
    """Read model for a UI, derived from the session after every mutation."""

    session_id: str
    step_index: int
    total_steps: int
    position: TestPosition
    current_level: int
    phase: ProcedurePhase
    suggested_action: SuggestedAction
    suggested_change: int
    guidance: str
    can_store_threshold: bool
    validation_message: str
    progress: int
    response_status: ResponseStatus
    tone_active: bool


class SessionManager:
    """
    Drives Hughson-Westlake training sessions.

    Args:
        config (TrainerConfig): Sequence and scoring settings
        tone_player (TonePlayer): Audio output, called on every presentation
        reference_provider (ReferenceThresholdProvider): Ground truth read once
            when a session completes
        clock (Clock): Stamps presentations; must be strictly increasing
    """

    def __init__(self, config: Optional[TrainerConfig] = None,
                 tone_player: Optional[TonePlayer] = None,
                 reference_provider: Optional[ReferenceThresholdProvider] = None,
                 clock: Optional[Clock] = None):
        self.config = config or TrainerConfig()
        self.tone_player = tone_player
        self.reference_provider = reference_provider
        self.clock = clock or SequenceClock()

        self._active: Dict[str, TestSession] = {}
        self._completed: Dict[str, TestSession] = {}
        self._current: Optional[TestSession] = None
        self._controller: Optional[HughsonWestlakeController] = None

    # Session lifecycle

    def start_session(self, patient_id, include_air_conduction=None,
                      include_bone_conduction=None, starting_level=None) -> TestSession:
        """Build a fresh sequence for ``patient_id`` and make it current."""
        air = self.config.include_air_conduction if include_air_conduction is None \
            else include_air_conduction
        bone = self.config.include_bone_conduction if include_bone_conduction is None \
            else include_bone_conduction
        if not (air or bone):
            raise ValueError("At least one of air or bone conduction must be enabled")
        level = self.config.starting_level if starting_level is None else starting_level

        session = TestSession(
            patient_id=patient_id,
            sequence=build_test_sequence(air, bone, level),
        )
        self._activate(session)
        self._move_to(0)
        logger.info("Started session %s for patient %s (%d steps)",
                    session.id, patient_id, len(session.sequence))
        return session

    def resume_session(self, session: TestSession) -> TestSession:
        """Adopt a (typically deserialized) session as the current one."""
        if session.completed:
            raise ValueError(f"Session {session.id} is already completed")
        if not 0 <= session.cursor < len(session.sequence):
            raise InvalidPosition(session.cursor, f"Cursor {session.cursor} is outside the sequence")
        # Stamps issued from now on must beat those saved with the session
        session.last_stamp = session.newest_stamp()
        self._activate(session)
        logger.info("Resumed session %s at step %d", session.id, session.cursor + 1)
        return session

    def _activate(self, session):
        self._active[session.id] = session
        self._current = session
        self._controller = HughsonWestlakeController(session.ledger)

    def complete_session(self, false_positives=None) -> TestResult:
        """
        Close the current session and score it.

        Steps never presented are tagged ``not_tested``. Reference thresholds
        are fetched once from the provider.

        Args:
            false_positives (int): Externally counted false positives; replaces
                the count kept by ``register_false_positive``

        Returns:
            TestResult
        """
        session = self.session
        if false_positives is not None:
            session.false_positive_count = int(false_positives)

        for step in session.sequence:
            if not step.completed and not step.responses:
                step.response_status = ResponseStatus.NOT_TESTED

        session.end_time = datetime.now()
        session.tone_active = False
        reference = []
        if self.reference_provider is not None:
            reference = self.reference_provider.get_thresholds(session.patient_id)

        session.results = calculate_results(
            session, reference,
            high_starting_level=self.config.high_starting_level,
            min_responses=self.config.min_responses_per_position,
        )
        session.completed = True

        self._active.pop(session.id, None)
        self._completed[session.id] = session
        self._current = None
        self._controller = None

        logger.info("Completed session %s: accuracy %.1f%%, %d/%d positions tested",
                    session.id, session.results.accuracy,
                    session.results.completion.tested, session.results.completion.total)
        return session.results

    @property
    def session(self) -> TestSession:
        if self._current is None:
            raise NoActiveSession()
        return self._current

    @property
    def has_active_session(self) -> bool:
        return self._current is not None

    @property
    def current_step(self) -> TestStep:
        return self.session.current_step

    @property
    def controller(self) -> HughsonWestlakeController:
        if self._controller is None:
            raise NoActiveSession()
        return self._controller

    # Registry

    @property
    def active_sessions(self) -> List[TestSession]:
        return list(self._active.values())

    @property
    def completed_sessions(self) -> List[TestSession]:
        return list(self._completed.values())

    def get_session(self, session_id) -> Optional[TestSession]:
        return self._active.get(session_id) or self._completed.get(session_id)

    def clear_sessions(self):
        self._active.clear()
        self._completed.clear()
        self._current = None
        self._controller = None

    # Presentations

    def _stamp(self) -> float:
        """Next clock reading, forced past the session's newest stamp."""
        session = self.session
        stamp = self.clock.now()
        if session.last_stamp is not None and stamp <= session.last_stamp:
            stamp = session.last_stamp + 1
        session.last_stamp = stamp
        return stamp

    def present_tone(self) -> float:
        """Play the current step's tone and return its presentation stamp."""
        step = self.current_step
        stamp = self._stamp()
        if self.tone_player is not None:
            self.tone_player.present(step.frequency, step.current_level,
                                     step.ear, step.conduction_type)
        step.last_presented_at = stamp
        self.session.tone_active = True
        return stamp

    def record_outcome(self, did_respond: bool, presentation_time=None):
        """
        Feed the listener's response (or silence) to the procedure.

        Args:
            did_respond (bool): Whether the listener responded
            presentation_time (float): Stamp of the presentation this outcome
                belongs to; defaults to the step's latest presentation

        Returns:
            Transition, or None when the outcome duplicates one already processed
        """
        step = self.current_step
        if presentation_time is None:
            presentation_time = step.last_presented_at
            if presentation_time is None:
                presentation_time = self._stamp()

        self.session.tone_active = False
        try:
            return self.controller.process_outcome(step, did_respond, presentation_time)
        except DuplicatePresentation as exc:
            logger.debug("Ignoring outcome for %s: %s", step.position, exc)
            return None

    def register_false_positive(self) -> int:
        """Count a response given while no tone was playing."""
        session = self.session
        session.false_positive_count += 1
        logger.debug("False positive #%d", session.false_positive_count)
        return session.false_positive_count

    # Level

    def adjust_level(self, change: int) -> int:
        """Move the current step's level by ``change`` dB, clamped to [-10, 120]."""
        step = self.current_step
        previous = step.current_level
        step.current_level = clamp_level(previous + change)
        self.controller.level_adjusted(step, step.current_level - previous)
        return step.current_level

    def set_level(self, level: int) -> int:
        return self.adjust_level(clamp_level(level) - self.current_step.current_level)

    # Navigation

    def _move_to(self, index):
        session = self.session
        session.cursor = index
        session.tone_active = False
        step = session.current_step
        if not step.guidance:
            step.guidance = start_guidance(step)
        return step

    def skip(self) -> Optional[TestStep]:
        """
        Advance to the next step without confirming anything.

        At the last step the session is completed instead and None is returned.
        """
        session = self.session
        if session.cursor >= len(session.sequence) - 1:
            logger.info("Skipped past the last step; completing session %s", session.id)
            self.complete_session()
            return None
        return self._move_to(session.cursor + 1)

    def previous(self) -> TestStep:
        session = self.session
        if session.cursor == 0:
            logger.warning("Already at the first step of session %s", session.id)
            raise AlreadyAtBoundary("Already at the first step")
        return self._move_to(session.cursor - 1)

    def jump_to(self, position: TestPosition, occurrence: int = 0) -> TestStep:
        """
        Move the cursor to ``position``.

        Args:
            position (TestPosition): Target position
            occurrence (int): Which occurrence to land on when the position
                appears more than once (the 1000 Hz retest)
        """
        indices = [i for i, step in enumerate(self.session.sequence) if step.position == position]
        if not indices or not 0 <= occurrence < len(indices):
            raise InvalidPosition(position)
        return self._move_to(indices[occurrence])

    def adjust_frequency(self, direction: int) -> TestStep:
        """Step to the next higher (direction > 0) or lower frequency, same ear and route."""
        if direction == 0:
            raise ValueError("direction must be positive or negative")
        step = self.current_step
        frequencies = frequencies_for(step.conduction_type)
        idx = frequencies.index(step.frequency) + (1 if direction > 0 else -1)
        if not 0 <= idx < len(frequencies):
            logger.warning("No %s frequency after %s", 'higher' if direction > 0 else 'lower',
                           step.position)
            raise AlreadyAtBoundary(f"No {'higher' if direction > 0 else 'lower'} frequency "
                                    f"for {step.ear.value} {step.conduction_type.value}")
        return self.jump_to(TestPosition(frequencies[idx], step.ear, step.conduction_type))

    def select_audiogram_point(self, frequency, level) -> TestStep:
        """Jump to the frequency nearest ``frequency`` (same ear and route) and set the level."""
        step = self.current_step
        nearest = min(frequencies_for(step.conduction_type),
                      key=lambda f: abs(math.log2(f / frequency)))
        if nearest != step.frequency:
            step = self.jump_to(TestPosition(nearest, step.ear, step.conduction_type))
        self.set_level(level)
        return step

    # Thresholds

    def validate_threshold(self) -> ThresholdValidation:
        return self.controller.validation(self.current_step)

    def _unbracketed_retest(self) -> bool:
        """True for a repeated position with no bracketing outcome of its own yet.

        The ledger is shared by both occurrences of a position, so a retest
        would otherwise inherit the first pass's confirmation untested.
        """
        session = self.session
        step = session.current_step
        if not any(s.position == step.position for s in session.sequence[:session.cursor]):
            return False
        return not any(r.phase is ProcedurePhase.THRESHOLD for r in step.responses)

    def can_store_threshold(self) -> bool:
        return self.controller.can_store_threshold(self.current_step) and \
            not self._unbracketed_retest()

    def store_threshold(self) -> ThresholdPoint:
        """
        Commit the lowest confirmed level as the current position's threshold.

        Raises:
            ThresholdNotConfirmed: no level satisfies the 2-of-3 rule yet, or
                this is a retest with no bracketing outcome of its own; the
                step is left untouched
        """
        step = self.current_step
        level = self.controller.confirmed_level(step)
        if level is None:
            validation = self.controller.validation(step)
            logger.warning("Threshold for %s not confirmed: %s", step.position, validation.message)
            raise ThresholdNotConfirmed(validation)
        if self._unbracketed_retest():
            validation = ThresholdValidation(
                False, ValidationReason.NO_DATA,
                f"Bracket the retest of {step.position} before storing its threshold.",
                step.current_level)
            logger.warning("Threshold for %s not confirmed: %s", step.position, validation.message)
            raise ThresholdNotConfirmed(validation)

        step.completed = True
        step.response_status = ResponseStatus.THRESHOLD
        step.current_level = level
        step.threshold_level = level
        self.controller.threshold_stored(step, level)
        logger.info("Stored threshold %s dB for %s", level, step.position)

        return ThresholdPoint(step.frequency, step.ear, step.conduction_type, level,
                              ResponseStatus.THRESHOLD)

    def mark_no_response(self) -> ThresholdPoint:
        """Close the current position as no response at the level reached."""
        step = self.current_step
        step.completed = True
        step.response_status = ResponseStatus.NO_RESPONSE
        self.controller.no_response_marked(step)
        logger.info("Marked %s as no response at %s dB", step.position, step.current_level)
        return ThresholdPoint(step.frequency, step.ear, step.conduction_type,
                              step.current_level, ResponseStatus.NO_RESPONSE)

    def apply_suggested_action(self):
        """
        Carry out what the procedure currently suggests.

        Returns:
            SuggestedAction: the action that was applied
        """
        step = self.current_step
        action = step.suggested_action
        if action in (SuggestedAction.INCREASE, SuggestedAction.DECREASE):
            self.adjust_level(step.suggested_change)
        elif action is SuggestedAction.STORE_THRESHOLD:
            self.store_threshold()
        elif action is SuggestedAction.NEXT:
            self.skip()
        return action

    # Read model

    def progress(self, session: Optional[TestSession] = None) -> int:
        """Percentage of unique positions with a stored threshold."""
        session = session or self.session
        confirmed = {step.position for step in session.sequence if step.has_threshold}
        if self.config.progress_scope == 'full':
            total = FULL_PROTOCOL_POSITIONS
        else:
            total = len(unique_positions(session.sequence))
        if total == 0:
            return 0
        return round_half_up(100 * len(confirmed) / total)

    def threshold_points(self, session: Optional[TestSession] = None) -> List[ThresholdPoint]:
        """One point per unique position, untested positions included."""
        session = session or self.session
        return extract_threshold_points(session.sequence)

    def stored_thresholds(self, session: Optional[TestSession] = None) -> List[ThresholdPoint]:
        return [p for p in self.threshold_points(session)
                if p.response_status is ResponseStatus.THRESHOLD]

    def snapshot(self) -> TrainerSnapshot:
        session = self.session
        step = session.current_step
        return TrainerSnapshot(
            session_id=session.id,
            step_index=session.cursor,
            total_steps=len(session.sequence),
            position=step.position,
            current_level=step.current_level,
            phase=step.phase,
            suggested_action=step.suggested_action,
            suggested_change=step.suggested_change,
            guidance=step.guidance,
            can_store_threshold=self.can_store_threshold(),
            validation_message=self.controller.validation(step).message,
            progress=self.progress(session),
            response_status=step.response_status,
            tone_active=session.tone_active,
        )
