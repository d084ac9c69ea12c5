"""
Level/phase controller for the Hughson-Westlake procedure.

The procedure is expressed as a pure transition function
``next_transition(phase, did_respond, tally) -> Transition`` plus a thin
controller that applies transitions to a ``TestStep`` and the response ledger:

    initial     no response -> +10 dB, stay      response -> descending, -10 dB
    descending  response    -> -10 dB, stay      no response -> ascending, +5 dB
    ascending   no response -> +5 dB, stay       response -> threshold, -10 dB
                                                 (that level's tally is reset)
    threshold   every outcome is tallied. response -> -10 dB, or complete and
                store_threshold once the level is confirmed. no response -> +5 dB
    complete    terminal, suggests next. Moving the level re-opens bracketing.
"""
# Standard library imports
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Local imports
from .ledger import LevelTally, ResponseLedger, ThresholdValidation, validate_tally
from .types import ProcedurePhase, ResponseRecord, SuggestedAction, TestStep
from ..errors import DuplicatePresentation
from ..utils.defaults import (
    ASCENDING_STEP_SIZE,
    DESCENDING_STEP_SIZE,
    INITIAL_STEP_SIZE,
)

logger = logging.getLogger(__name__)


class LedgerDelta(str, Enum):
    NONE = 'none'
    TALLY = 'tally'
    RESET = 'reset'


@dataclass(frozen=True)
class Transition:
    phase: ProcedurePhase
    action: SuggestedAction
    level_change: int
    ledger_delta: LedgerDelta


def _increase(phase):
    step = INITIAL_STEP_SIZE if phase is ProcedurePhase.INITIAL else ASCENDING_STEP_SIZE
    return Transition(phase, SuggestedAction.INCREASE, step, LedgerDelta.NONE)


def next_transition(phase: ProcedurePhase, did_respond: bool,
                    tally: Optional[LevelTally] = None) -> Transition:
    """
    Decide the next phase and suggestion for one presentation outcome.

    Args:
        phase (ProcedurePhase): Phase the presentation was made in
        did_respond (bool): Whether the listener responded
        tally (LevelTally): Ledger cell at the presented level before this
            outcome; only consulted in the threshold phase

    Returns:
        Transition: New phase, suggested action, suggested level change in dB
        and what to do with the ledger cell at the presented level
    """
    if phase is ProcedurePhase.INITIAL:
        if did_respond:
            return Transition(ProcedurePhase.DESCENDING, SuggestedAction.DECREASE,
                              -DESCENDING_STEP_SIZE, LedgerDelta.NONE)
        return _increase(ProcedurePhase.INITIAL)

    if phase is ProcedurePhase.DESCENDING:
        if did_respond:
            return Transition(ProcedurePhase.DESCENDING, SuggestedAction.DECREASE,
                              -DESCENDING_STEP_SIZE, LedgerDelta.NONE)
        return _increase(ProcedurePhase.ASCENDING)

    if phase is ProcedurePhase.ASCENDING:
        if did_respond:
            return Transition(ProcedurePhase.THRESHOLD, SuggestedAction.DECREASE,
                              -DESCENDING_STEP_SIZE, LedgerDelta.RESET)
        return _increase(ProcedurePhase.ASCENDING)

    if phase is ProcedurePhase.THRESHOLD:
        if not did_respond:
            return Transition(ProcedurePhase.THRESHOLD, SuggestedAction.INCREASE,
                              ASCENDING_STEP_SIZE, LedgerDelta.TALLY)
        projected = (tally or LevelTally()).with_outcome(True)
        if validate_tally(projected).is_valid:
            return Transition(ProcedurePhase.COMPLETE, SuggestedAction.STORE_THRESHOLD,
                              0, LedgerDelta.TALLY)
        # Any response forces a 10 dB descent
        return Transition(ProcedurePhase.THRESHOLD, SuggestedAction.DECREASE,
                          -DESCENDING_STEP_SIZE, LedgerDelta.TALLY)

    return Transition(ProcedurePhase.COMPLETE, SuggestedAction.NEXT, 0, LedgerDelta.NONE)


def start_guidance(step: TestStep) -> str:
    return (f"Testing {step.position}. Start at a comfortable level "
            f"({step.current_level} dB) and present the tone.")


def outcome_guidance(previous_phase, transition, level, did_respond, tally=None) -> str:
    """Trainee-facing explanation of what the last outcome means."""
    target = level + transition.level_change
    heard = tally.ratio() if tally is not None else ''

    if previous_phase is ProcedurePhase.INITIAL:
        if did_respond:
            return (f"The patient responded at {level} dB. Decrease by 10 dB to "
                    f"{target} dB and present again to start the descent.")
        return (f"No response at the starting level. Increase by 10 dB to "
                f"{target} dB and present again.")

    if previous_phase is ProcedurePhase.DESCENDING:
        if did_respond:
            return (f"Still heard at {level} dB. Keep descending in 10 dB steps: "
                    f"go to {target} dB.")
        return (f"No response at {level} dB, so you are below threshold. Switch to "
                f"the ascending run: increase by 5 dB to {target} dB.")

    if previous_phase is ProcedurePhase.ASCENDING:
        if did_respond:
            return (f"First ascending response at {level} dB marks the threshold "
                    f"region. Begin bracketing: decrease by 10 dB to {target} dB "
                    f"(10 dB down after a response, 5 dB up after none).")
        return f"Still no response at {level} dB. Increase by 5 dB to {target} dB."

    if previous_phase is ProcedurePhase.THRESHOLD:
        if transition.action is SuggestedAction.STORE_THRESHOLD:
            return (f"Threshold established at {level} dB with {heard} responses, "
                    f"meeting the 2 out of 3 rule. Store it and move on.")
        if did_respond:
            return (f"Response at {level} dB ({heard} so far). After any response "
                    f"decrease by 10 dB to {target} dB.")
        return (f"No response at {level} dB ({heard} so far). Increase by 5 dB "
                f"to {target} dB and continue bracketing.")

    return "Threshold already determined here. Move to the next frequency."


class HughsonWestlakeController:
    """
    Applies procedure transitions to steps and keeps the ledger in sync.

    The controller holds no per-position state of its own: phase, suggestion
    and last processed presentation time live on the ``TestStep``.
    """

    def __init__(self, ledger: Optional[ResponseLedger] = None):
        self.ledger = ledger if ledger is not None else ResponseLedger()

    def process_outcome(self, step: TestStep, did_respond: bool,
                        presentation_time: float) -> Transition:
        """
        Process one presentation outcome for ``step``.

        Raises:
            DuplicatePresentation: ``presentation_time`` is not newer than the
                last outcome already processed for this step
        """
        last = step.last_presentation_time
        if last is not None and presentation_time <= last:
            raise DuplicatePresentation(presentation_time, last)

        position = step.position
        level = step.current_level
        phase = step.phase
        transition = next_transition(phase, did_respond, self.ledger.tally(position, level))

        if transition.ledger_delta is LedgerDelta.RESET:
            self.ledger.reset(position, level)
        elif transition.ledger_delta is LedgerDelta.TALLY:
            self.ledger.record_response(position, level, did_respond, ProcedurePhase.THRESHOLD)

        if did_respond and transition.phase in (ProcedurePhase.THRESHOLD, ProcedurePhase.COMPLETE):
            step.last_response_level = level

        step.responses.append(ResponseRecord(level, did_respond, presentation_time, phase))
        step.phase = transition.phase
        step.suggested_action = transition.action
        step.suggested_change = transition.level_change
        step.guidance = outcome_guidance(
            phase, transition, level, did_respond,
            self.ledger.tally(position, level) if phase is ProcedurePhase.THRESHOLD else None)
        step.last_presentation_time = presentation_time

        logger.debug("%s: %s at %s dB in %s -> %s, suggest %s",
                     position, 'response' if did_respond else 'no response',
                     level, phase.value, transition.phase.value, transition.action.value)
        return transition

    def level_adjusted(self, step: TestStep, change: int):
        """
        Update guidance after the trainee moved the level by ``change`` dB.

        Only a completed position changes phase: it re-enters the threshold
        phase so bracketing can be reopened for a retest.
        """
        if change == 0:
            return
        level = step.current_level
        expected = self.expected_change(step)

        if step.phase is ProcedurePhase.COMPLETE:
            step.phase = ProcedurePhase.THRESHOLD
            step.guidance = (f"Bracketing reopened at {level} dB. Present the tone "
                             f"to re-test this frequency.")
        elif expected is not None and change != expected:
            step.guidance = (f"You moved {change:+d} dB to {level} dB; the procedure "
                             f"calls for {expected:+d} dB here. Present the tone to "
                             f"check for a response.")
        else:
            step.guidance = f"Present the tone at {level} dB to check for a response."

        step.suggested_action = SuggestedAction.PRESENT
        step.suggested_change = 0

    def expected_change(self, step: TestStep) -> Optional[int]:
        """The level change the procedure currently asks for, if any."""
        if step.suggested_action in (SuggestedAction.INCREASE, SuggestedAction.DECREASE):
            return step.suggested_change
        return None

    def validation(self, step: TestStep) -> ThresholdValidation:
        """Validation verdict for the step's current level."""
        return self.ledger.validate(step.position, step.current_level)

    def can_store_threshold(self, step: TestStep) -> bool:
        return self.ledger.lowest_confirmed_level(step.position) is not None

    def confirmed_level(self, step: TestStep) -> Optional[int]:
        """Lowest confirmed level for the step's position."""
        return self.ledger.lowest_confirmed_level(step.position)

    def threshold_stored(self, step: TestStep, level: int):
        step.phase = ProcedurePhase.COMPLETE
        step.suggested_action = SuggestedAction.NEXT
        step.suggested_change = 0
        step.guidance = (f"Threshold stored at {level} dB. Move on to the next "
                         f"frequency, or change the level to re-test.")

    def no_response_marked(self, step: TestStep):
        step.phase = ProcedurePhase.COMPLETE
        step.suggested_action = SuggestedAction.NEXT
        step.suggested_change = 0
        step.guidance = (f"No response at the maximum level for {step.position}. "
                         f"Recorded as no response; move on.")
