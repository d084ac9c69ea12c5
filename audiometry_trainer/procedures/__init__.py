"""
Procedures module for the Hughson-Westlake threshold determination engine.

This module contains:
- The test sequence builder
- The response ledger and 2-of-3 threshold validation
- The level/phase controller
- The session manager
"""

from .types import (
    ConductionType,
    Ear,
    ProcedurePhase,
    ResponseStatus,
    SuggestedAction,
    TestPosition,
    TestStep,
    ThresholdPoint,
)
from .sequence import build_test_sequence
from .ledger import ResponseLedger, ThresholdValidation, validate_tally
from .hughson_westlake import HughsonWestlakeController, next_transition
from .session import SessionManager, TestSession, TrainerSnapshot

__all__ = [
    "ConductionType",
    "Ear",
    "ProcedurePhase",
    "ResponseStatus",
    "SuggestedAction",
    "TestPosition",
    "TestStep",
    "ThresholdPoint",
    "build_test_sequence",
    "ResponseLedger",
    "ThresholdValidation",
    "validate_tally",
    "HughsonWestlakeController",
    "next_transition",
    "SessionManager",
    "TestSession",
    "TrainerSnapshot",
]
