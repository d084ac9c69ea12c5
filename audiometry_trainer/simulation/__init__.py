"""
Simulation module for audiometry testing.

This module contains functions and classes for:
- Simulating listener responses
- Generating reference hearing profiles
- Running sessions on autopilot, singly or in batches
"""

from .hearing_level_gen import generate_reference_profile
from .response_model import HearingResponseModel
from .patient import ScriptedOracle, SimulatedPatient, ThresholdOracle
from .autopilot import ProcedureAutopilot, run_autopilot_session
from .batch import BatchSimulator

__all__ = [
    "generate_reference_profile",
    "HearingResponseModel",
    "ScriptedOracle",
    "SimulatedPatient",
    "ThresholdOracle",
    "ProcedureAutopilot",
    "run_autopilot_session",
    "BatchSimulator",
]
