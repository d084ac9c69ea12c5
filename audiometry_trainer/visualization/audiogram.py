"""Audiogram plotting and presentation tables."""

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from ..procedures.types import ConductionType, Ear, ResponseStatus
from ..simulation.response_model import HearingResponseModel
from ..utils.defaults import AIR_CONDUCTION_FREQUENCIES, MAX_TEST_LEVEL, MIN_TEST_LEVEL

# Clinical symbols: right O / <, left X / >
SYMBOLS = {
    (Ear.RIGHT, ConductionType.AIR): 'o',
    (Ear.LEFT, ConductionType.AIR): 'x',
    (Ear.RIGHT, ConductionType.BONE): '<',
    (Ear.LEFT, ConductionType.BONE): '>',
}


def ear_colors():
    palette = sns.color_palette("deep")
    return {Ear.RIGHT: palette[3], Ear.LEFT: palette[0]}


def _series(points, ear, conduction_type):
    selected = sorted(
        (p for p in points
         if p.ear is ear and p.conduction_type is conduction_type and p.hearing_level is not None),
        key=lambda p: p.frequency,
    )
    heard = [p for p in selected if p.response_status is ResponseStatus.THRESHOLD]
    silent = [p for p in selected if p.response_status is ResponseStatus.NO_RESPONSE]
    return heard, silent


def plot_audiogram(points, reference=None, ax=None, title="Audiogram", show=False):
    """
    Plot threshold points on a clinical audiogram.

    Right ear is red, left ear blue; air conduction is joined by solid lines,
    bone conduction drawn as symbols only. No-response points get a downward
    arrow. Reference thresholds, if given, are drawn faded and dashed.

    Args:
        points (list): ``ThresholdPoint`` objects to plot
        reference (list): Optional ground-truth ``ThresholdPoint`` objects
        ax (matplotlib.axes.Axes): Axes to draw on; a new figure if None
        title (str): Axes title
        show (bool): Call ``plt.show()`` when done

    Returns:
        matplotlib.axes.Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 6))
    colors = ear_colors()

    layers = [(points, 1.0, '-')]
    if reference:
        layers.insert(0, (reference, 0.35, '--'))

    for layer_points, alpha, linestyle in layers:
        for (ear, conduction_type), marker in SYMBOLS.items():
            heard, silent = _series(layer_points, ear, conduction_type)
            color = colors[ear]
            is_air = conduction_type is ConductionType.AIR
            label = f"{ear.value.capitalize()} {conduction_type.value}" if alpha == 1.0 else None

            if heard:
                ax.plot([p.frequency for p in heard], [p.hearing_level for p in heard],
                        marker=marker, linestyle=linestyle if is_air else 'none',
                        color=color, markersize=10, lw=2, markeredgewidth=2,
                        markerfacecolor='none', alpha=alpha, label=label)
            if silent:
                ax.plot([p.frequency for p in silent], [p.hearing_level for p in silent],
                        marker=marker, linestyle='none', color=color, markersize=10,
                        markeredgewidth=2, markerfacecolor='none', alpha=alpha)
                for p in silent:
                    ax.annotate('', xy=(p.frequency, p.hearing_level + 8),
                                xytext=(p.frequency, p.hearing_level),
                                arrowprops=dict(arrowstyle='->', color=color, alpha=alpha))

    ax.set_xscale('log')
    ax.set_xticks(AIR_CONDUCTION_FREQUENCIES)
    ax.set_xticklabels([str(f) for f in AIR_CONDUCTION_FREQUENCIES])
    ax.minorticks_off()
    ax.set_ylim(MAX_TEST_LEVEL, MIN_TEST_LEVEL)
    ax.set_yticks(np.arange(MIN_TEST_LEVEL, MAX_TEST_LEVEL + 1, 10))
    ax.set_xlabel('Frequency (Hz)')
    ax.set_ylabel('Hearing Level (dB HL)')
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    ax.spines['top'].set_visible(False)
    ax.spines['right'].set_visible(False)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc='lower left')

    if show:
        plt.show()
    return ax


def print_progression(progression, label):
    """Print detailed progression for one test position."""
    print(f"\nProgression for {label}:")
    print("Level | Response | Ratio | Phase")
    print("-" * 40)
    for level, response, ratio, phase in progression:
        print(f"{level:3d} dB | {str(response):5} | {ratio:^7} | {phase}")


def plot_psychometric_comparison(threshold_probabilities=(0.5, 0.7), slope=1,
                                 guess_rate=0, lapse_rate=0, ax=None, show=False):
    """Plot psychometric functions with different threshold probabilities."""
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 6))
    stimulus_levels = np.linspace(-20, 20, 1000)

    colors = sns.color_palette("deep", len(threshold_probabilities))

    for prob, color in zip(threshold_probabilities, colors):
        model = HearingResponseModel(
            slope=slope,
            guess_rate=guess_rate,
            lapse_rate=lapse_rate,
            threshold_probability=prob
        )

        probs = model.get_response_probability(stimulus_levels, 0)
        ax.plot(stimulus_levels, probs, color=color, label=f'p={prob:.1f} at threshold')
        ax.axhline(y=prob, color=color, linestyle=':', alpha=0.5)

    ax.axvline(x=0, color='k', linestyle='--', label='Threshold')

    ax.set_xlabel('Stimulus Level Relative to Threshold (dB)')
    ax.set_ylabel('Response Probability')
    ax.set_title('Comparison of Psychometric Functions')
    ax.grid(True)
    ax.legend()
    ax.set_ylim(-0.05, 1.05)

    if show:
        plt.show()
    return ax
