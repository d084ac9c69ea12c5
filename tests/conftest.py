from dataclasses import dataclass, field
from typing import List

import matplotlib

matplotlib.use("Agg")

import pytest

from audiometry_trainer.procedures.session import SessionManager
from audiometry_trainer.procedures.types import ProcedurePhase
from audiometry_trainer.utils.config import TrainerConfig


@dataclass
class FakeClock:
    """Strictly increasing clock; every reading advances by ``step``."""

    t: float = 0.0
    step: float = 1.0

    def now(self) -> float:
        self.t += self.step
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@dataclass
class RecordingTonePlayer:
    calls: List[tuple] = field(default_factory=list)

    def present(self, frequency, level, ear, conduction_type) -> None:
        self.calls.append((frequency, level, ear, conduction_type))


def present_and_record(manager, did_respond, apply=True):
    """One trainee cycle: present, record the outcome, follow the suggestion."""
    manager.present_tone()
    transition = manager.record_outcome(did_respond)
    if apply:
        manager.apply_suggested_action()
    return transition


def confirm_current(manager, level, heard=2):
    """Confirm ``level`` for the current position and store it.

    All but the last of the ``heard`` responses are tallied directly; the last
    one is a real presentation in the threshold phase.
    """
    step = manager.current_step
    for _ in range(heard - 1):
        manager.controller.ledger.record_response(step.position, level, True,
                                                  ProcedurePhase.THRESHOLD)
    step.current_level = level
    step.phase = ProcedurePhase.THRESHOLD
    manager.present_tone()
    manager.record_outcome(True)
    return manager.store_threshold()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def player():
    return RecordingTonePlayer()


@pytest.fixture
def manager(clock, player):
    mgr = SessionManager(tone_player=player, clock=clock)
    mgr.start_session("patient-1")
    return mgr


@pytest.fixture
def air_manager(clock, player):
    mgr = SessionManager(config=TrainerConfig(include_bone_conduction=False),
                         tone_player=player, clock=clock)
    mgr.start_session("patient-air")
    return mgr


@pytest.fixture
def respond():
    return present_and_record


@pytest.fixture
def confirm():
    return confirm_current
