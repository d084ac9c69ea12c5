import numpy as np
import pandas as pd
from scipy.stats import truncnorm

from ..procedures.types import ConductionType, Ear, ResponseStatus, ThresholdPoint
from ..utils.defaults import (
    AIR_CONDUCTION_FREQUENCIES,
    AIR_CONDUCTION_MAX_LEVELS,
    BONE_CONDUCTION_FREQUENCIES,
    BONE_CONDUCTION_MAX_LEVELS,
    MIN_TEST_LEVEL,
)

PROFILE_SHAPES = ('flat', 'sloping', 'notched')


def truncated_jitter(size, variance=4.0, limit=5.0, rng=None):
    """
    Draw per-frequency deviations from a truncated normal distribution.

    Args:
        size (int): Number of values to draw.
        variance (float): Variance of the underlying normal distribution.
        limit (float): Values are truncated to [-limit, limit].
        rng (np.random.Generator or int): Random generator or seed.

    Returns:
        np.ndarray: The deviations in dB.
    """
    if variance <= 0:
        return np.zeros(size)
    sigma = np.sqrt(variance)
    return truncnorm.rvs(-limit / sigma, limit / sigma, loc=0, scale=sigma,
                         size=size, random_state=rng)


def shape_curve(shape, frequencies, base_level=10, severity=30):
    """
    Noise-free hearing levels for a named audiogram shape.

    Args:
        shape (str): 'flat', 'sloping' (loss grows linearly with octave up to
            ``severity`` at the highest frequency) or 'notched' (loss of
            ``severity`` centred on 4 kHz, half an octave wide).
        frequencies (list): Frequencies in Hz.
        base_level (float): Hearing level of the unaffected region in dB HL.
        severity (float): Extra loss in dB at the worst frequency.

    Returns:
        np.ndarray: Hearing levels in dB HL, one per frequency.

    Raises:
        ValueError: If the shape is not recognized.
    """
    octaves = np.log2(np.asarray(frequencies, dtype=float) / min(frequencies))
    if shape == 'flat':
        return np.full(len(octaves), float(base_level))
    if shape == 'sloping':
        span = octaves.max() if octaves.max() > 0 else 1.0
        return base_level + severity * octaves / span
    if shape == 'notched':
        distance = np.log2(np.asarray(frequencies, dtype=float) / 4000)
        return base_level + severity * np.exp(-0.5 * (distance / 0.5) ** 2)
    raise ValueError(f"Unrecognized profile shape: {shape}. Expected one of {PROFILE_SHAPES}.")


def round_to_step(levels, step=5):
    """Round hearing levels to the audiometer step size."""
    return (np.round(np.asarray(levels, dtype=float) / step) * step).astype(int)


def _point(frequency, ear, conduction_type, level, max_level):
    if level > max_level:
        return ThresholdPoint(frequency, ear, conduction_type, int(max_level),
                              ResponseStatus.NO_RESPONSE)
    return ThresholdPoint(frequency, ear, conduction_type, int(max(level, MIN_TEST_LEVEL)),
                          ResponseStatus.THRESHOLD)


def generate_reference_profile(shape='flat', base_level=10, severity=30, variance=4.0,
                               air_bone_gap=0, asymmetry=0, seed=None):
    """
    Generate a synthetic ground-truth audiogram for both ears.

    Air conduction thresholds follow ``shape`` plus truncated normal jitter
    and are rounded to 5 dB. Bone conduction thresholds equal the air
    thresholds minus ``air_bone_gap``. Levels beyond the audiometer's output
    limit for a frequency come back as no response at that limit.

    Args:
        shape (str): Audiogram shape, see ``shape_curve``.
        base_level (float): Hearing level of the unaffected region in dB HL.
        severity (float): Extra loss in dB at the worst frequency.
        variance (float): Jitter variance in dB^2; 0 disables jitter.
        air_bone_gap (float): Conductive component in dB.
        asymmetry (float): Extra loss added to the left ear in dB.
        seed (int or np.random.Generator): Random seed for reproducibility.

    Returns:
        list: ``ThresholdPoint`` objects, right ear then left, air then bone.
    """
    rng = np.random.default_rng(seed)
    frequencies = list(AIR_CONDUCTION_FREQUENCIES)

    points = []
    for ear in (Ear.RIGHT, Ear.LEFT):
        offset = asymmetry if ear is Ear.LEFT else 0
        curve = shape_curve(shape, frequencies, base_level + offset, severity)
        air = round_to_step(curve + truncated_jitter(len(frequencies), variance, rng=rng))
        air_by_freq = dict(zip(frequencies, air))

        for freq in frequencies:
            points.append(_point(freq, ear, ConductionType.AIR, air_by_freq[freq],
                                 AIR_CONDUCTION_MAX_LEVELS[freq]))
        for freq in BONE_CONDUCTION_FREQUENCIES:
            bone = round_to_step(air_by_freq[freq] - air_bone_gap)
            points.append(_point(freq, ear, ConductionType.BONE, int(bone),
                                 BONE_CONDUCTION_MAX_LEVELS[freq]))
    return points


def profile_to_dataframe(points):
    """
    Converts threshold points to a wide pandas DataFrame.

    Args:
        points (list): ``ThresholdPoint`` objects.

    Returns:
        pd.DataFrame: One row per ear/conduction type, one column per
        frequency; positions without a threshold are NaN.
    """
    records = [
        {
            'ear': p.ear.value,
            'conduction_type': p.conduction_type.value,
            'frequency': p.frequency,
            'hearing_level': p.hearing_level
            if p.response_status is ResponseStatus.THRESHOLD else np.nan,
        }
        for p in points
    ]
    frame = pd.DataFrame(records, columns=['ear', 'conduction_type', 'frequency', 'hearing_level'])
    return frame.pivot_table(index=['conduction_type', 'ear'], columns='frequency',
                             values='hearing_level', dropna=False)
