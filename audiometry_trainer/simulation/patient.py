"""
Listeners that answer tone presentations.

The engine itself never draws random numbers: whoever drives it asks a
``ResponseOracle`` whether a tone was heard. Tests use the deterministic
oracles, batch simulations use ``SimulatedPatient``.
"""
# Standard library imports
from typing import Dict, Iterable, List, Optional, Protocol, Union

# Third-party imports
import numpy as np

# Local imports
from .response_model import HearingResponseModel
from ..procedures.types import ResponseStatus, TestPosition, ThresholdPoint


class ResponseOracle(Protocol):
    def responds(self, position: TestPosition, level: int) -> bool:
        ...


ThresholdInput = Union[Iterable[ThresholdPoint], Dict[TestPosition, float]]


def thresholds_by_position(thresholds: ThresholdInput) -> Dict[TestPosition, float]:
    """Map positions to threshold levels; untested and no-response points are dropped."""
    if isinstance(thresholds, dict):
        return dict(thresholds)
    return {
        p.position: p.hearing_level for p in thresholds
        if p.response_status is ResponseStatus.THRESHOLD and p.hearing_level is not None
    }


class ThresholdOracle:
    """Responds exactly when the level reaches the listener's threshold."""

    def __init__(self, thresholds: ThresholdInput):
        self.thresholds = thresholds_by_position(thresholds)

    def responds(self, position, level):
        threshold = self.thresholds.get(position)
        return threshold is not None and level >= threshold


class ScriptedOracle:
    """Replays a fixed list of outcomes in order, ignoring the stimulus."""

    def __init__(self, outcomes: Iterable[bool]):
        self._outcomes = list(outcomes)
        self._index = 0
        self.calls: List[tuple] = []

    @property
    def remaining(self) -> int:
        return len(self._outcomes) - self._index

    def responds(self, position, level):
        if self._index >= len(self._outcomes):
            raise RuntimeError(f"Scripted outcomes exhausted after {self._index} presentations")
        outcome = bool(self._outcomes[self._index])
        self._index += 1
        self.calls.append((position, level, outcome))
        return outcome


class SimulatedPatient:
    """
    Probabilistic listener built on ``HearingResponseModel``.

    Args:
        thresholds: Reference thresholds, as ``ThresholdPoint`` list or a
            position -> level dict
        response_model (HearingResponseModel): Psychometric function
        seed (int): Seed for the patient's own random generator
        patient_id (str): Identifier used when starting sessions
    """

    def __init__(self, thresholds: ThresholdInput,
                 response_model: Optional[HearingResponseModel] = None,
                 seed=None, patient_id='simulated'):
        self.patient_id = patient_id
        self.thresholds = thresholds_by_position(thresholds)
        self.response_model = response_model or HearingResponseModel()
        self.rng = np.random.default_rng(seed)

    def responds(self, position, level):
        threshold = self.thresholds.get(position)
        if threshold is None:
            # Nothing audible here; only guesses produce a response
            return bool(self.rng.random() < self.response_model.guess_rate)
        return self.response_model.sample_response(level, threshold, self.rng)

    def response_probability(self, position, level) -> float:
        threshold = self.thresholds.get(position)
        if threshold is None:
            return self.response_model.guess_rate
        return float(self.response_model.get_response_probability(level, threshold))
