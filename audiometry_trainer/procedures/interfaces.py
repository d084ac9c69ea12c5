"""Collaborators the engine talks to but does not implement."""
# Standard library imports
from typing import Dict, Iterable, List, Optional, Protocol

# Local imports
from .types import ConductionType, Ear, ThresholdPoint


class TonePlayer(Protocol):
    """Audio output. The engine only says what to play; never how."""

    def present(self, frequency: int, level: int, ear: Ear,
                conduction_type: ConductionType) -> None:
        ...


class ReferenceThresholdProvider(Protocol):
    """Ground-truth thresholds for a patient, read once at session completion."""

    def get_thresholds(self, patient_id: str) -> List[ThresholdPoint]:
        ...


class StaticReferenceProvider:
    """In-memory provider keyed by patient id."""

    def __init__(self,
                 thresholds_by_patient: Optional[Dict[str, Iterable[ThresholdPoint]]] = None):
        self._thresholds = {
            patient_id: list(points)
            for patient_id, points in (thresholds_by_patient or {}).items()
        }

    def add_patient(self, patient_id, points):
        self._thresholds[patient_id] = list(points)

    def get_thresholds(self, patient_id):
        return list(self._thresholds.get(patient_id, []))
