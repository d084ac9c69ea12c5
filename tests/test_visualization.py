import matplotlib.pyplot as plt

from audiometry_trainer.procedures.types import ConductionType, Ear, ResponseStatus, ThresholdPoint
from audiometry_trainer.simulation.hearing_level_gen import generate_reference_profile
from audiometry_trainer.visualization.audiogram import (
    plot_audiogram,
    plot_psychometric_comparison,
    print_progression,
)


def test_plot_audiogram_draws_every_series():
    profile = generate_reference_profile('sloping', seed=0)
    ax = plot_audiogram(profile, title="Patient")

    labels = ax.get_legend_handles_labels()[1]
    assert sorted(labels) == ['Left air', 'Left bone', 'Right air', 'Right bone']
    bottom, top = ax.get_ylim()
    assert bottom > top
    assert ax.get_title() == "Patient"
    plt.close(ax.figure)


def test_plot_audiogram_with_reference_and_no_response():
    points = [
        ThresholdPoint(1000, Ear.RIGHT, ConductionType.AIR, 30, ResponseStatus.THRESHOLD),
        ThresholdPoint(8000, Ear.RIGHT, ConductionType.AIR, 105, ResponseStatus.NO_RESPONSE),
        ThresholdPoint(2000, Ear.LEFT, ConductionType.AIR, None, ResponseStatus.NOT_TESTED),
    ]
    reference = [ThresholdPoint(1000, Ear.RIGHT, ConductionType.AIR, 25, ResponseStatus.THRESHOLD)]
    fig, ax = plt.subplots()

    assert plot_audiogram(points, reference=reference, ax=ax) is ax
    assert len(ax.lines) == 3
    assert ax.get_legend_handles_labels()[1] == ['Right air']
    plt.close(fig)


def test_psychometric_comparison():
    ax = plot_psychometric_comparison(threshold_probabilities=(0.3, 0.5, 0.7))

    assert len(ax.get_legend_handles_labels()[1]) == 4
    plt.close(ax.figure)


def test_print_progression(capsys):
    print_progression([(40, False, '0/0', 'initial'), (50, True, '0/0', 'initial')],
                      "1000 Hz right air")

    out = capsys.readouterr().out
    assert "Progression for 1000 Hz right air" in out
    assert " 50 dB | True " in out
