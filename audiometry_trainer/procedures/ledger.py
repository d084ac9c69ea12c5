"""
Per-position response tallies and the 2-of-2 / 2-of-3 confirmation rule.

Only presentations made during the threshold (bracketing) phase count as
evidence. Responses from the initial, descending and first ascending runs
only locate the threshold region and are never tallied here.
"""
# Standard library imports
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

# Local imports
from .types import ProcedurePhase, TestPosition
from ..utils.defaults import MIN_CONFIRMING_RESPONSES

logger = logging.getLogger(__name__)


class ValidationReason(str, Enum):
    CONFIRMED = 'confirmed'
    NO_DATA = 'no_data'
    INSUFFICIENT_PRESENTATIONS = 'insufficient_presentations'
    FAILED_MAJORITY = 'failed_majority'


@dataclass(frozen=True)
class LevelTally:
    total_presentations: int = 0
    affirmative_count: int = 0

    def with_outcome(self, did_respond: bool) -> 'LevelTally':
        return LevelTally(
            total_presentations=self.total_presentations + 1,
            affirmative_count=self.affirmative_count + (1 if did_respond else 0),
        )

    def ratio(self) -> str:
        return f"{self.affirmative_count}/{self.total_presentations}"


@dataclass(frozen=True)
class ThresholdValidation:
    is_valid: bool
    reason: ValidationReason
    message: str
    level: Optional[int] = None


def validate_tally(tally: LevelTally, level: Optional[int] = None) -> ThresholdValidation:
    """
    Apply the Hughson-Westlake confirmation rule to one level's tally.

    Valid iff 2 of 2 presentations were heard, or at least 2 of 3 or more.

    Args:
        tally (LevelTally): Presentations and responses at a level
        level (int): Level the tally belongs to, used in the message only

    Returns:
        ThresholdValidation: Verdict plus the reason it is (not) confirmable
    """
    total = tally.total_presentations
    heard = tally.affirmative_count
    at = '' if level is None else f" at {level} dB"

    if total == 0:
        return ThresholdValidation(
            False, ValidationReason.NO_DATA,
            f"No bracketing responses recorded{at} yet.", level)

    if total < MIN_CONFIRMING_RESPONSES:
        return ThresholdValidation(
            False, ValidationReason.INSUFFICIENT_PRESENTATIONS,
            f"Need more presentations{at} ({heard}/{total} so far).", level)

    if (total == MIN_CONFIRMING_RESPONSES and heard == MIN_CONFIRMING_RESPONSES) or \
            (total > MIN_CONFIRMING_RESPONSES and heard >= MIN_CONFIRMING_RESPONSES):
        return ThresholdValidation(
            True, ValidationReason.CONFIRMED,
            f"Threshold confirmed{at} with {heard}/{total} responses.", level)

    # 2 presentations with fewer than 2 responses still has a chance at 2 of 3
    if total == MIN_CONFIRMING_RESPONSES:
        return ThresholdValidation(
            False, ValidationReason.INSUFFICIENT_PRESENTATIONS,
            f"Need more presentations{at} ({heard}/{total} so far).", level)

    return ThresholdValidation(
        False, ValidationReason.FAILED_MAJORITY,
        f"Only {heard}/{total} responses{at}; at least 2 of 3 are required.", level)


class ResponseLedger:
    """Tally of presentations and responses per position and level."""

    def __init__(self):
        self._cells: Dict[TestPosition, Dict[int, LevelTally]] = {}

    def record_response(self, position, level, did_respond, phase) -> bool:
        """
        Count one presentation outcome.

        Returns:
            bool: True if tallied, False when ``phase`` is not the threshold phase
        """
        if phase is not ProcedurePhase.THRESHOLD:
            return False
        cells = self._cells.setdefault(position, {})
        cells[level] = cells.get(level, LevelTally()).with_outcome(did_respond)
        logger.debug("Tallied %s at %s dB: %s", position, level, cells[level].ratio())
        return True

    def reset(self, position, level):
        """Zero one cell; the first ascending response is discovery only."""
        self._cells.setdefault(position, {})[level] = LevelTally()

    def tally(self, position, level) -> LevelTally:
        return self._cells.get(position, {}).get(level, LevelTally())

    def levels(self, position) -> List[int]:
        return sorted(self._cells.get(position, {}))

    def validate(self, position, level) -> ThresholdValidation:
        return validate_tally(self.tally(position, level), level)

    def lowest_confirmed_level(self, position) -> Optional[int]:
        """Minimum level whose tally satisfies the confirmation rule, if any."""
        for level in self.levels(position):
            if self.validate(position, level).is_valid:
                return level
        return None

    def to_dict(self):
        return [
            {
                'position': position.to_dict(),
                'levels': {
                    str(level): [t.total_presentations, t.affirmative_count]
                    for level, t in sorted(cells.items())
                },
            }
            for position, cells in self._cells.items()
        ]

    @classmethod
    def from_dict(cls, data):
        ledger = cls()
        for entry in data:
            position = TestPosition.from_dict(entry['position'])
            ledger._cells[position] = {
                int(level): LevelTally(int(total), int(heard))
                for level, (total, heard) in entry['levels'].items()
            }
        return ledger
