"""
Test sequence construction for a clinical pure-tone session.

Order per ear/route: 1000 Hz, ascending frequencies above it, 1000 Hz again
(reliability retest), then descending frequencies below it. Routes are
visited right-air, left-air, right-bone, left-bone.
"""
# Standard library imports
from typing import List, Sequence

# Local imports
from .types import ConductionType, Ear, TestPosition, TestStep, clamp_level
from ..utils.defaults import (
    AIR_CONDUCTION_FREQUENCIES,
    BONE_CONDUCTION_FREQUENCIES,
    DEFAULT_STARTING_LEVEL,
    REFERENCE_FREQUENCY,
)

TEST_ORDER = [
    (Ear.RIGHT, ConductionType.AIR),
    (Ear.LEFT, ConductionType.AIR),
    (Ear.RIGHT, ConductionType.BONE),
    (Ear.LEFT, ConductionType.BONE),
]


def frequencies_for(conduction_type: ConductionType) -> List[int]:
    """Return the available test frequencies for a route, low to high."""
    if conduction_type is ConductionType.BONE:
        return list(BONE_CONDUCTION_FREQUENCIES)
    return list(AIR_CONDUCTION_FREQUENCIES)


def order_frequencies(frequencies: Sequence[int]) -> List[int]:
    """
    Arrange frequencies in clinical test order.

    Args:
        frequencies (list): Frequencies in ascending Hz order

    Returns:
        list: 1000 Hz, higher frequencies ascending, 1000 Hz again, lower
        frequencies descending. Without 1000 Hz the input order is kept.
    """
    frequencies = list(frequencies)
    if REFERENCE_FREQUENCY not in frequencies:
        return frequencies

    idx = frequencies.index(REFERENCE_FREQUENCY)
    above = frequencies[idx + 1:]
    below = frequencies[:idx][::-1]
    return [REFERENCE_FREQUENCY] + above + [REFERENCE_FREQUENCY] + below


def build_test_sequence(include_air_conduction=True,
                        include_bone_conduction=True,
                        starting_level=DEFAULT_STARTING_LEVEL) -> List[TestStep]:
    """
    Build the ordered list of steps a session must visit.

    Args:
        include_air_conduction (bool): Include both air conduction ears
        include_bone_conduction (bool): Include both bone conduction ears
        starting_level (int): Level every step starts at, in dB HL

    Returns:
        list: Fresh ``TestStep`` objects with sequential ids starting at 1
    """
    included = {
        ConductionType.AIR: include_air_conduction,
        ConductionType.BONE: include_bone_conduction,
    }
    level = clamp_level(starting_level)

    sequence = []
    step_id = 1
    for ear, conduction_type in TEST_ORDER:
        if not included[conduction_type]:
            continue
        for frequency in order_frequencies(frequencies_for(conduction_type)):
            sequence.append(TestStep(
                step_id=step_id,
                position=TestPosition(frequency, ear, conduction_type),
                current_level=level,
            ))
            step_id += 1
    return sequence


def unique_positions(sequence: Sequence[TestStep]) -> List[TestPosition]:
    """Distinct positions of a sequence in first-visit order (retest counted once)."""
    seen = []
    for step in sequence:
        if step.position not in seen:
            seen.append(step.position)
    return seen
