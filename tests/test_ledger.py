import pytest

from audiometry_trainer.procedures.ledger import (
    LevelTally,
    ResponseLedger,
    ValidationReason,
    validate_tally,
)
from audiometry_trainer.procedures.types import ConductionType, Ear, ProcedurePhase, TestPosition

POS = TestPosition(1000, Ear.RIGHT, ConductionType.AIR)
OTHER = TestPosition(2000, Ear.RIGHT, ConductionType.AIR)


@pytest.mark.parametrize("total, heard, valid, reason", [
    (0, 0, False, ValidationReason.NO_DATA),
    (1, 1, False, ValidationReason.INSUFFICIENT_PRESENTATIONS),
    (2, 2, True, ValidationReason.CONFIRMED),
    (2, 1, False, ValidationReason.INSUFFICIENT_PRESENTATIONS),
    (3, 2, True, ValidationReason.CONFIRMED),
    (3, 1, False, ValidationReason.FAILED_MAJORITY),
    (4, 2, True, ValidationReason.CONFIRMED),
    (5, 1, False, ValidationReason.FAILED_MAJORITY),
])
def test_two_of_three_rule(total, heard, valid, reason):
    result = validate_tally(LevelTally(total, heard), level=40)

    assert result.is_valid is valid
    assert result.reason is reason
    assert "40 dB" in result.message


def test_only_threshold_phase_is_tallied():
    ledger = ResponseLedger()

    for phase in (ProcedurePhase.INITIAL, ProcedurePhase.DESCENDING, ProcedurePhase.ASCENDING):
        assert ledger.record_response(POS, 40, True, phase) is False
    assert ledger.tally(POS, 40) == LevelTally(0, 0)

    assert ledger.record_response(POS, 40, True, ProcedurePhase.THRESHOLD) is True
    assert ledger.record_response(POS, 40, False, ProcedurePhase.THRESHOLD) is True
    assert ledger.tally(POS, 40) == LevelTally(2, 1)


def test_reset_zeroes_one_cell():
    ledger = ResponseLedger()
    ledger.record_response(POS, 40, True, ProcedurePhase.THRESHOLD)
    ledger.record_response(POS, 45, True, ProcedurePhase.THRESHOLD)

    ledger.reset(POS, 45)

    assert ledger.tally(POS, 45) == LevelTally(0, 0)
    assert ledger.tally(POS, 40) == LevelTally(1, 1)


def test_lowest_confirmed_level_scans_all_levels():
    ledger = ResponseLedger()
    for level, outcomes in [(50, [True, True]), (45, [True, False, True]), (40, [False, False])]:
        for heard in outcomes:
            ledger.record_response(POS, level, heard, ProcedurePhase.THRESHOLD)

    assert ledger.levels(POS) == [40, 45, 50]
    assert ledger.lowest_confirmed_level(POS) == 45
    assert ledger.lowest_confirmed_level(OTHER) is None


def test_positions_are_independent():
    ledger = ResponseLedger()
    ledger.record_response(POS, 40, True, ProcedurePhase.THRESHOLD)

    assert ledger.tally(OTHER, 40) == LevelTally(0, 0)


def test_serialized_ledger_keeps_tallies():
    ledger = ResponseLedger()
    ledger.record_response(POS, 40, True, ProcedurePhase.THRESHOLD)
    ledger.record_response(POS, 40, True, ProcedurePhase.THRESHOLD)
    ledger.record_response(OTHER, -5, False, ProcedurePhase.THRESHOLD)

    restored = ResponseLedger.from_dict(ledger.to_dict())

    assert restored.tally(POS, 40) == LevelTally(2, 2)
    assert restored.tally(OTHER, -5) == LevelTally(1, 0)
    assert restored.lowest_confirmed_level(POS) == 40
