"""
Automated examiner that follows every suggestion the engine makes.

Used to batch-simulate sessions and as an end-to-end check of the procedure:
present, ask the oracle, record the outcome, then apply the suggested action.
"""
# Standard library imports
import logging
from typing import Dict, List, Optional, Tuple

# Local imports
from .patient import ResponseOracle
from ..analysis.results import TestResult
from ..procedures.session import SessionManager
from ..procedures.types import ConductionType, SuggestedAction, TestStep
from ..utils.defaults import (
    AIR_CONDUCTION_MAX_LEVELS,
    BONE_CONDUCTION_MAX_LEVELS,
    MAX_LEVEL_NO_RESPONSE_LIMIT,
    MAX_PRESENTATIONS_PER_POSITION,
    MAX_TEST_LEVEL,
)

logger = logging.getLogger(__name__)

# (level, response, ratio, phase)
ProgressionType = List[Tuple[int, bool, str, str]]
ProgressionDict = Dict[int, ProgressionType]


def max_output_level(step: TestStep) -> int:
    """Audiometer output limit for the step's frequency and route."""
    limits = (BONE_CONDUCTION_MAX_LEVELS if step.conduction_type is ConductionType.BONE
              else AIR_CONDUCTION_MAX_LEVELS)
    return limits.get(step.frequency, MAX_TEST_LEVEL)


class ProcedureAutopilot:
    def __init__(self, manager: SessionManager, oracle: ResponseOracle,
                 max_presentations=MAX_PRESENTATIONS_PER_POSITION,
                 max_level_no_response_limit=MAX_LEVEL_NO_RESPONSE_LIMIT):
        """
        Initialize the autopilot.

        Args:
            manager (SessionManager): Engine with an active session
            oracle (ResponseOracle): Decides whether each tone is heard
            max_presentations (int): Presentations per step before giving up
            max_level_no_response_limit (int): Silent presentations at maximum
                output before the step is marked no response
        """
        self.manager = manager
        self.oracle = oracle
        self.max_presentations = max_presentations
        self.max_level_no_response_limit = max_level_no_response_limit

    def run_step(self) -> ProgressionType:
        """
        Test the current step until a threshold is stored, no response is
        marked or the presentation cap is hit.

        Returns:
            list: (level, response, ratio, phase) for each presentation
        """
        manager = self.manager
        step = manager.current_step
        max_level = max_output_level(step)
        progression = []
        silent_at_max = 0

        for _ in range(self.max_presentations):
            if step.current_level > max_level:
                manager.set_level(max_level)

            level = step.current_level
            phase = step.phase
            manager.present_tone()
            heard = self.oracle.responds(step.position, level)
            manager.record_outcome(heard)

            tally = manager.controller.ledger.tally(step.position, level)
            progression.append((level, heard, tally.ratio(), phase.value))

            if not heard and level >= max_level:
                silent_at_max += 1
                if silent_at_max >= self.max_level_no_response_limit:
                    manager.mark_no_response()
                    return progression

            if step.suggested_action is SuggestedAction.STORE_THRESHOLD:
                manager.store_threshold()
                return progression

            manager.apply_suggested_action()

        logger.warning("Gave up on %s after %d presentations", step.position,
                       self.max_presentations)
        return progression

    def run(self, false_positives: Optional[int] = None) -> Tuple[TestResult, ProgressionDict]:
        """
        Run every remaining step of the active session and complete it.

        Returns:
            tuple: (TestResult, progression per step id)
        """
        manager = self.manager
        session = manager.session
        progressions = {}

        while True:
            step = manager.current_step
            if not step.completed:
                progressions[step.step_id] = self.run_step()
            if session.cursor >= len(session.sequence) - 1:
                break
            manager.skip()

        result = manager.complete_session(false_positives=false_positives)
        return result, progressions


def run_autopilot_session(oracle: ResponseOracle, patient_id='simulated',
                          manager: Optional[SessionManager] = None,
                          **session_kwargs) -> Tuple[TestResult, ProgressionDict]:
    """Start a session for ``patient_id`` and let the autopilot finish it."""
    manager = manager or SessionManager()
    manager.start_session(patient_id, **session_kwargs)
    return ProcedureAutopilot(manager, oracle).run()
