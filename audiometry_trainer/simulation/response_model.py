"""Psychometric response model for a simulated listener."""

import numpy as np
from scipy.special import expit, logit

from ..utils.defaults import DEFAULT_GUESS_RATE, DEFAULT_LAPSE_RATE, DEFAULT_SLOPE


class HearingResponseModel:
    """Probability that a listener responds to a tone at a given level.

    A logistic function of (level - threshold) bounded below by the guess rate
    and above by 1 - lapse rate. ``threshold_probability`` is the response
    probability of the underlying logistic exactly at threshold.
    """

    def __init__(self, slope=DEFAULT_SLOPE, guess_rate=DEFAULT_GUESS_RATE,
                 lapse_rate=DEFAULT_LAPSE_RATE, threshold_probability=0.5):
        if not 0 <= threshold_probability <= 1:
            raise ValueError("threshold_probability must be between 0 and 1")
        if slope <= 0:
            raise ValueError(f"slope must be positive, got {slope}")
        if guess_rate < 0 or lapse_rate < 0 or guess_rate + lapse_rate >= 1:
            raise ValueError(f"guess_rate ({guess_rate}) and lapse_rate ({lapse_rate}) "
                             f"must be non-negative and sum to less than 1")

        self.slope = slope
        self.guess_rate = guess_rate
        self.lapse_rate = lapse_rate
        self.threshold_probability = threshold_probability

        # Shift so the logistic passes threshold_probability at threshold
        if threshold_probability == 0:
            self.threshold_bias = float('-inf')
        elif threshold_probability == 1:
            self.threshold_bias = float('inf')
        else:
            self.threshold_bias = logit(threshold_probability) / self.slope

    @classmethod
    def from_dict(cls, params):
        return cls(**(params or {}))

    def get_response_probability(self, stimulus_level, true_threshold):
        """Probability of a response at ``stimulus_level`` dB HL."""
        x = self.slope * (stimulus_level - true_threshold + self.threshold_bias)
        p = expit(x)
        return self.guess_rate + (1 - self.guess_rate - self.lapse_rate) * p

    def sample_response(self, stimulus_level, true_threshold, rng=None):
        """Draw a yes/no response.

        Args:
            stimulus_level (float): Presented level in dB HL
            true_threshold (float): Listener's threshold in dB HL
            rng (np.random.Generator or int): Generator to draw from, or a seed

        Returns:
            bool
        """
        if not isinstance(rng, np.random.Generator):
            rng = np.random.default_rng(rng)
        p = self.get_response_probability(stimulus_level, true_threshold)
        return bool(rng.random() < p)
