import pytest

from audiometry_trainer.procedures.sequence import (
    build_test_sequence,
    frequencies_for,
    order_frequencies,
    unique_positions,
)
from audiometry_trainer.procedures.types import (
    ConductionType,
    Ear,
    ProcedurePhase,
    ResponseStatus,
    TestPosition,
)


def test_full_sequence_has_retest_per_ear_and_route():
    sequence = build_test_sequence()

    # 10 air frequencies + retest, 4 bone frequencies + retest, both ears
    assert len(sequence) == 2 * 11 + 2 * 5
    assert [s.step_id for s in sequence] == list(range(1, len(sequence) + 1))
    assert len(unique_positions(sequence)) == 28


def test_air_order_is_1000_up_retest_then_down():
    sequence = build_test_sequence(include_bone_conduction=False)
    right = [s.frequency for s in sequence if s.ear is Ear.RIGHT]

    assert right == [1000, 1500, 2000, 3000, 4000, 6000, 8000, 1000, 750, 500, 250]


def test_bone_order():
    sequence = build_test_sequence(include_air_conduction=False)
    left = [s.frequency for s in sequence if s.ear is Ear.LEFT]

    assert left == [1000, 2000, 4000, 1000, 500]


def test_routes_visited_right_air_left_air_right_bone_left_bone():
    sequence = build_test_sequence()
    routes = []
    for step in sequence:
        route = (step.ear, step.conduction_type)
        if not routes or routes[-1] != route:
            routes.append(route)

    assert routes == [
        (Ear.RIGHT, ConductionType.AIR),
        (Ear.LEFT, ConductionType.AIR),
        (Ear.RIGHT, ConductionType.BONE),
        (Ear.LEFT, ConductionType.BONE),
    ]


def test_steps_start_fresh():
    for step in build_test_sequence(starting_level=30):
        assert step.current_level == 30
        assert step.phase is ProcedurePhase.INITIAL
        assert step.response_status is ResponseStatus.NONE
        assert not step.completed
        assert step.responses == []


def test_starting_level_is_clamped():
    assert build_test_sequence(starting_level=200)[0].current_level == 120
    assert build_test_sequence(starting_level=-40)[0].current_level == -10


def test_order_frequencies_without_reference_keeps_input():
    assert order_frequencies([250, 500]) == [250, 500]


@pytest.mark.parametrize("conduction_type, expected", [
    (ConductionType.AIR, [250, 500, 750, 1000, 1500, 2000, 3000, 4000, 6000, 8000]),
    (ConductionType.BONE, [500, 1000, 2000, 4000]),
])
def test_frequencies_for(conduction_type, expected):
    assert frequencies_for(conduction_type) == expected


def test_positions_are_hashable_value_objects():
    a = TestPosition(1000, Ear.RIGHT, ConductionType.AIR)
    b = TestPosition(1000, Ear.RIGHT, ConductionType.AIR)

    assert a == b
    assert len({a, b}) == 1
    assert str(a) == "1000 Hz right air"
    assert TestPosition.from_dict(a.to_dict()) == a
