"""
Post-hoc scoring of a completed training session.

Compares the trainee's thresholds with the patient's reference audiogram,
lists technical errors in how the procedure was run and summarises
completion.
"""
# Standard library imports
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

# Third-party imports
import numpy as np
import pandas as pd

# Local imports
from ..procedures.sequence import unique_positions
from ..procedures.types import ResponseStatus, TestPosition, TestStep, ThresholdPoint
from ..utils.defaults import (
    HIGH_STARTING_LEVEL,
    MIN_RESPONSES_PER_POSITION,
    REFERENCE_FREQUENCY,
    RETEST_TOLERANCE_DB,
)


@dataclass(frozen=True)
class TechnicalError:
    code: str
    message: str
    position: Optional[TestPosition] = None

    def to_dict(self):
        return {
            'code': self.code,
            'message': self.message,
            'position': None if self.position is None else self.position.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        position = data.get('position')
        return cls(data['code'], data['message'],
                   None if position is None else TestPosition.from_dict(position))


@dataclass(frozen=True)
class CompletionStats:
    tested: int
    untested: int
    total: int


@dataclass(frozen=True)
class PointComparison:
    position: TestPosition
    user_level: int
    reference_level: int
    difference: int
    score: float


@dataclass
class TestResult:
    """Scored outcome of a completed session."""

    __test__ = False

    patient_id: str
    session_id: str
    timestamp: str
    user_thresholds: List[ThresholdPoint]
    reference_thresholds: List[ThresholdPoint]
    accuracy: float
    duration_s: int
    technical_errors: List[TechnicalError] = field(default_factory=list)
    false_positive_count: int = 0
    completion: CompletionStats = CompletionStats(0, 0, 0)
    comparisons: List[PointComparison] = field(default_factory=list)

    def to_dict(self):
        return {
            'patient_id': self.patient_id,
            'session_id': self.session_id,
            'timestamp': self.timestamp,
            'user_thresholds': [p.to_dict() for p in self.user_thresholds],
            'reference_thresholds': [p.to_dict() for p in self.reference_thresholds],
            'accuracy': self.accuracy,
            'duration_s': self.duration_s,
            'technical_errors': [e.to_dict() for e in self.technical_errors],
            'false_positive_count': self.false_positive_count,
            'completion': {
                'tested': self.completion.tested,
                'untested': self.completion.untested,
                'total': self.completion.total,
            },
        }

    @classmethod
    def from_dict(cls, data):
        user = [ThresholdPoint.from_dict(p) for p in data['user_thresholds']]
        reference = [ThresholdPoint.from_dict(p) for p in data['reference_thresholds']]
        _, comparisons = score_thresholds(user, reference)
        return cls(
            patient_id=data['patient_id'],
            session_id=data['session_id'],
            timestamp=data['timestamp'],
            user_thresholds=user,
            reference_thresholds=reference,
            accuracy=float(data['accuracy']),
            duration_s=int(data['duration_s']),
            technical_errors=[TechnicalError.from_dict(e) for e in data.get('technical_errors', [])],
            false_positive_count=int(data.get('false_positive_count', 0)),
            completion=CompletionStats(**data['completion']),
            comparisons=comparisons,
        )


def grade_difference(difference):
    """
    Grade one threshold against its reference.

    Within 5 dB scores 100 down to 75 (5 points per dB), within 10 dB scores
    50, anything further off scores 25.
    """
    difference = abs(difference)
    if difference <= 5:
        return 100.0 - difference * 5
    if difference <= 10:
        return 50.0
    return 25.0


def _presented_levels(step: TestStep) -> List[int]:
    return [r.level for r in step.responses]


def step_threshold_point(step: TestStep) -> ThresholdPoint:
    """Distil one step into a threshold point."""
    pos = step.position
    if step.has_threshold:
        level = step.threshold_level if step.threshold_level is not None else step.current_level
        return ThresholdPoint(pos.frequency, pos.ear, pos.conduction_type, level,
                              ResponseStatus.THRESHOLD)

    presented = _presented_levels(step)
    if step.response_status is ResponseStatus.NO_RESPONSE or presented:
        # Unresolved: report the highest level tested
        level = max(presented) if presented else step.current_level
        return ThresholdPoint(pos.frequency, pos.ear, pos.conduction_type, level,
                              ResponseStatus.NO_RESPONSE)

    return ThresholdPoint(pos.frequency, pos.ear, pos.conduction_type, None,
                          ResponseStatus.NOT_TESTED)


def aggregate_position(steps: Sequence[TestStep]) -> ThresholdPoint:
    """
    Merge all occurrences of one position (the 1000 Hz retest appears twice).

    A confirmed threshold wins (the lower one if both are confirmed), then the
    occurrence with more responses, otherwise the position is not tested.
    """
    confirmed = [s for s in steps if s.has_threshold]
    if confirmed:
        return min((step_threshold_point(s) for s in confirmed),
                   key=lambda p: p.hearing_level)

    tried = [s for s in steps if s.responses or s.response_status is ResponseStatus.NO_RESPONSE]
    if tried:
        return step_threshold_point(max(tried, key=lambda s: len(s.responses)))

    return step_threshold_point(steps[0])


def _occurrences(sequence: Sequence[TestStep]) -> Dict[TestPosition, List[TestStep]]:
    grouped = {}
    for step in sequence:
        grouped.setdefault(step.position, []).append(step)
    return grouped


def extract_threshold_points(sequence: Sequence[TestStep]) -> List[ThresholdPoint]:
    """One threshold point per unique position, in test order. Nothing is omitted."""
    grouped = _occurrences(sequence)
    return [aggregate_position(grouped[pos]) for pos in unique_positions(sequence)]


def score_thresholds(user_points: Iterable[ThresholdPoint],
                     reference_points: Iterable[ThresholdPoint]) -> Tuple[float, List[PointComparison]]:
    """
    Compare confirmed user thresholds with confirmed reference thresholds.

    Returns:
        tuple: (mean score in percent, 0 if nothing compared; per-point comparisons)
    """
    reference = {
        p.position: p for p in reference_points
        if p.response_status is ResponseStatus.THRESHOLD and p.hearing_level is not None
    }

    comparisons = []
    for point in user_points:
        if point.response_status is not ResponseStatus.THRESHOLD:
            continue
        match = reference.get(point.position)
        if match is None:
            continue
        difference = point.hearing_level - match.hearing_level
        comparisons.append(PointComparison(
            position=point.position,
            user_level=point.hearing_level,
            reference_level=match.hearing_level,
            difference=difference,
            score=grade_difference(difference),
        ))

    if not comparisons:
        return 0.0, comparisons
    return float(np.mean([c.score for c in comparisons])), comparisons


def identify_technical_errors(sequence: Sequence[TestStep],
                              high_starting_level=HIGH_STARTING_LEVEL,
                              min_responses=MIN_RESPONSES_PER_POSITION) -> List[TechnicalError]:
    """List procedural mistakes visible in the recorded steps."""
    errors = []
    grouped = _occurrences(sequence)

    skipped = [pos for pos, steps in grouped.items() if not any(s.completed for s in steps)]
    if skipped:
        errors.append(TechnicalError(
            'skipped_positions', f"Skipped {len(skipped)} test positions"))

    for step in sequence:
        if step.has_threshold and len(step.responses) < min_responses:
            errors.append(TechnicalError(
                'insufficient_responses',
                f"Fewer than {min_responses} responses recorded for {step.position}",
                step.position))

    for step in sequence:
        if step.responses and step.responses[0].level > high_starting_level:
            errors.append(TechnicalError(
                'high_starting_level',
                f"Initial level above {high_starting_level} dB for {step.position}",
                step.position))

    for pos, steps in grouped.items():
        if pos.frequency != REFERENCE_FREQUENCY:
            continue
        levels = [step_threshold_point(s).hearing_level for s in steps if s.has_threshold]
        if len(levels) >= 2 and max(levels) - min(levels) > RETEST_TOLERANCE_DB:
            errors.append(TechnicalError(
                'retest_mismatch',
                f"{pos} retest differs by {max(levels) - min(levels)} dB "
                f"(more than {RETEST_TOLERANCE_DB} dB)",
                pos))

    return errors


def completion_statistics(points: Sequence[ThresholdPoint]) -> CompletionStats:
    tested = sum(1 for p in points if p.response_status is not ResponseStatus.NOT_TESTED)
    return CompletionStats(tested=tested, untested=len(points) - tested, total=len(points))


def calculate_results(session, reference_thresholds=None, false_positive_count=None,
                      high_starting_level=HIGH_STARTING_LEVEL,
                      min_responses=MIN_RESPONSES_PER_POSITION,
                      end_time=None) -> TestResult:
    """
    Score a completed session.

    Args:
        session (TestSession): The session to score
        reference_thresholds (list): Ground-truth ``ThresholdPoint`` list
        false_positive_count (int): Responses given with no tone active;
            defaults to the count kept on the session
        high_starting_level (int): First presentations above this are flagged
        min_responses (int): Confirmed positions with fewer responses are flagged
        end_time (datetime): End of the session, defaults to the session's

    Returns:
        TestResult
    """
    reference = list(reference_thresholds or [])
    points = extract_threshold_points(session.sequence)
    accuracy, comparisons = score_thresholds(points, reference)

    end_time = end_time or session.end_time or datetime.now()
    duration_s = int(round((end_time - session.start_time).total_seconds()))

    if false_positive_count is None:
        false_positive_count = session.false_positive_count

    return TestResult(
        patient_id=session.patient_id,
        session_id=session.id,
        timestamp=end_time.isoformat(),
        user_thresholds=points,
        reference_thresholds=reference,
        accuracy=accuracy,
        duration_s=max(0, duration_s),
        technical_errors=identify_technical_errors(
            session.sequence, high_starting_level, min_responses),
        false_positive_count=int(false_positive_count),
        completion=completion_statistics(points),
        comparisons=comparisons,
    )


def thresholds_to_dataframe(points: Iterable[ThresholdPoint]) -> pd.DataFrame:
    """Tabulate threshold points, one row per position."""
    columns = ['frequency', 'ear', 'conduction_type', 'hearing_level', 'response_status']
    return pd.DataFrame([p.to_dict() for p in points], columns=columns)


def results_to_dataframe(result: TestResult) -> pd.DataFrame:
    """
    Join user thresholds with reference thresholds for review.

    Columns: frequency, ear, conduction_type, user_level, response_status,
    reference_level, difference, score. Reference columns are NaN where the
    position was not compared.
    """
    user = thresholds_to_dataframe(result.user_thresholds).rename(
        columns={'hearing_level': 'user_level'})
    scores = pd.DataFrame(
        [
            {
                'frequency': c.position.frequency,
                'ear': c.position.ear.value,
                'conduction_type': c.position.conduction_type.value,
                'reference_level': c.reference_level,
                'difference': c.difference,
                'score': c.score,
            }
            for c in result.comparisons
        ],
        columns=['frequency', 'ear', 'conduction_type', 'reference_level', 'difference', 'score'],
    )
    for frame in (user, scores):
        frame['frequency'] = frame['frequency'].astype('int64')
    return user.merge(scores, on=['frequency', 'ear', 'conduction_type'], how='left')
