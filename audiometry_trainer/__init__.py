"""
Audiometry Trainer - Hughson-Westlake pure-tone threshold determination engine
for training audiologists on simulated patients.
"""

__version__ = "0.1.0"

# Import main classes and functions for easy access
from .errors import (
    AlreadyAtBoundary,
    AudiometryTrainerError,
    DuplicatePresentation,
    InvalidPosition,
    NoActiveSession,
    ThresholdNotConfirmed,
)
from .procedures.session import SessionManager, TestSession, TrainerSnapshot
from .procedures.types import ConductionType, Ear, TestPosition, ThresholdPoint
from .analysis.results import TestResult, calculate_results
from .simulation.autopilot import ProcedureAutopilot
from .simulation.patient import SimulatedPatient, ThresholdOracle
from .utils.config import TrainerConfig, load_config

__all__ = [
    "AlreadyAtBoundary",
    "AudiometryTrainerError",
    "DuplicatePresentation",
    "InvalidPosition",
    "NoActiveSession",
    "ThresholdNotConfirmed",
    "SessionManager",
    "TestSession",
    "TrainerSnapshot",
    "ConductionType",
    "Ear",
    "TestPosition",
    "ThresholdPoint",
    "TestResult",
    "calculate_results",
    "ProcedureAutopilot",
    "SimulatedPatient",
    "ThresholdOracle",
    "TrainerConfig",
    "load_config",
]
