"""
Data model shared by the procedure engine.

Positions, steps and threshold points are plain dataclasses; enumerations are
string-valued so they serialize directly to JSON and pandas columns.
"""
# Standard library imports
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Local imports
from ..utils.defaults import MAX_TEST_LEVEL, MIN_TEST_LEVEL


class Ear(str, Enum):
    RIGHT = 'right'
    LEFT = 'left'


class ConductionType(str, Enum):
    AIR = 'air'
    BONE = 'bone'


class ProcedurePhase(str, Enum):
    INITIAL = 'initial'
    DESCENDING = 'descending'
    ASCENDING = 'ascending'
    THRESHOLD = 'threshold'
    COMPLETE = 'complete'


class SuggestedAction(str, Enum):
    PRESENT = 'present'
    INCREASE = 'increase'
    DECREASE = 'decrease'
    STORE_THRESHOLD = 'store_threshold'
    NEXT = 'next'


class ResponseStatus(str, Enum):
    NONE = 'none'
    THRESHOLD = 'threshold'
    NO_RESPONSE = 'no_response'
    NOT_TESTED = 'not_tested'


def clamp_level(level):
    """Clamp a hearing level to the audiometer range [-10, 120] dB HL."""
    return int(max(MIN_TEST_LEVEL, min(int(level), MAX_TEST_LEVEL)))


@dataclass(frozen=True)
class TestPosition:
    """One row of the test sequence: a frequency for one ear and route."""

    __test__ = False

    frequency: int
    ear: Ear
    conduction_type: ConductionType

    @property
    def key(self) -> str:
        return f"{self.frequency}-{self.ear.value}-{self.conduction_type.value}"

    def __str__(self):
        return f"{self.frequency} Hz {self.ear.value} {self.conduction_type.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'frequency': self.frequency,
            'ear': self.ear.value,
            'conduction_type': self.conduction_type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TestPosition':
        return cls(
            frequency=int(data['frequency']),
            ear=Ear(data['ear']),
            conduction_type=ConductionType(data['conduction_type']),
        )


@dataclass(frozen=True)
class ResponseRecord:
    """A single processed presentation outcome."""

    level: int
    did_respond: bool
    presentation_time: float
    phase: ProcedurePhase

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level,
            'did_respond': self.did_respond,
            'presentation_time': self.presentation_time,
            'phase': self.phase.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResponseRecord':
        return cls(
            level=int(data['level']),
            did_respond=bool(data['did_respond']),
            presentation_time=float(data['presentation_time']),
            phase=ProcedurePhase(data['phase']),
        )


@dataclass
class TestStep:
    """
    Mutable state of one position for the lifetime of a session.

    The procedure phase, current suggestion and guidance live on the step so
    that leaving and returning to a position resumes bracketing where it was.
    """

    __test__ = False

    step_id: int
    position: TestPosition
    current_level: int
    completed: bool = False
    response_status: ResponseStatus = ResponseStatus.NONE
    responses: List[ResponseRecord] = field(default_factory=list)
    phase: ProcedurePhase = ProcedurePhase.INITIAL
    suggested_action: SuggestedAction = SuggestedAction.PRESENT
    suggested_change: int = 0
    guidance: str = ''
    threshold_level: Optional[int] = None
    last_response_level: Optional[int] = None
    last_presentation_time: Optional[float] = None
    last_presented_at: Optional[float] = None

    @property
    def frequency(self) -> int:
        return self.position.frequency

    @property
    def ear(self) -> Ear:
        return self.position.ear

    @property
    def conduction_type(self) -> ConductionType:
        return self.position.conduction_type

    @property
    def has_threshold(self) -> bool:
        return self.completed and self.response_status is ResponseStatus.THRESHOLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            'step_id': self.step_id,
            'position': self.position.to_dict(),
            'current_level': self.current_level,
            'completed': self.completed,
            'response_status': self.response_status.value,
            'responses': [r.to_dict() for r in self.responses],
            'phase': self.phase.value,
            'suggested_action': self.suggested_action.value,
            'suggested_change': self.suggested_change,
            'guidance': self.guidance,
            'threshold_level': self.threshold_level,
            'last_response_level': self.last_response_level,
            'last_presentation_time': self.last_presentation_time,
            'last_presented_at': self.last_presented_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TestStep':
        return cls(
            step_id=int(data['step_id']),
            position=TestPosition.from_dict(data['position']),
            current_level=int(data['current_level']),
            completed=bool(data['completed']),
            response_status=ResponseStatus(data['response_status']),
            responses=[ResponseRecord.from_dict(r) for r in data.get('responses', [])],
            phase=ProcedurePhase(data['phase']),
            suggested_action=SuggestedAction(data['suggested_action']),
            suggested_change=int(data.get('suggested_change', 0)),
            guidance=data.get('guidance', ''),
            threshold_level=data.get('threshold_level'),
            last_response_level=data.get('last_response_level'),
            last_presentation_time=data.get('last_presentation_time'),
            last_presented_at=data.get('last_presented_at'),
        )


@dataclass(frozen=True)
class ThresholdPoint:
    """Externally visible result for one position.

    ``hearing_level`` is ``None`` for positions that were never tested.
    """

    frequency: int
    ear: Ear
    conduction_type: ConductionType
    hearing_level: Optional[int]
    response_status: ResponseStatus

    @property
    def position(self) -> TestPosition:
        return TestPosition(self.frequency, self.ear, self.conduction_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'frequency': self.frequency,
            'ear': self.ear.value,
            'conduction_type': self.conduction_type.value,
            'hearing_level': self.hearing_level,
            'response_status': self.response_status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ThresholdPoint':
        level = data.get('hearing_level')
        return cls(
            frequency=int(data['frequency']),
            ear=Ear(data['ear']),
            conduction_type=ConductionType(data['conduction_type']),
            hearing_level=None if level is None else int(level),
            response_status=ResponseStatus(data.get('response_status', 'threshold')),
        )
