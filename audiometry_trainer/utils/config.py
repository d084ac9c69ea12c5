"""Trainer configuration loaded from YAML."""
# Standard library imports
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

# Third-party imports
import yaml

# Local imports
from .defaults import (
    DEFAULT_STARTING_LEVEL,
    HIGH_STARTING_LEVEL,
    MAX_TEST_LEVEL,
    MIN_RESPONSES_PER_POSITION,
    MIN_TEST_LEVEL,
)

logger = logging.getLogger(__name__)

PROGRESS_SCOPES = ('enabled', 'full')

DEFAULT_SIMULATION = {
    'n_listeners': 20,
    'n_repeats': 1,
    'seed': 42,
    'profile_shapes': ['flat', 'sloping', 'notched'],
    'air_bone_gap': 0,
    'response_model': {
        'slope': 1.0,
        'guess_rate': 0.01,
        'lapse_rate': 0.01,
        'threshold_probability': 0.5,
    },
}


@dataclass
class TrainerConfig:
    """Settings for one engine instance."""

    include_air_conduction: bool = True
    include_bone_conduction: bool = True
    starting_level: int = DEFAULT_STARTING_LEVEL
    # 'enabled' divides by the session's own unique positions, 'full' by 28
    progress_scope: str = 'enabled'
    high_starting_level: int = HIGH_STARTING_LEVEL
    min_responses_per_position: int = MIN_RESPONSES_PER_POSITION

    def __post_init__(self):
        if not (self.include_air_conduction or self.include_bone_conduction):
            raise ValueError("At least one of air or bone conduction must be enabled")
        if self.progress_scope not in PROGRESS_SCOPES:
            raise ValueError(f"progress_scope must be one of {PROGRESS_SCOPES}, "
                             f"got {self.progress_scope!r}")
        if not MIN_TEST_LEVEL <= self.starting_level <= MAX_TEST_LEVEL:
            raise ValueError(f"starting_level must be within [{MIN_TEST_LEVEL}, "
                             f"{MAX_TEST_LEVEL}] dB, got {self.starting_level}")
        if self.min_responses_per_position < 1:
            raise ValueError("min_responses_per_position must be >= 1")

    @classmethod
    def from_dict(cls, data):
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown trainer settings: {unknown}")
        return cls(**data)

    def to_dict(self):
        return asdict(self)


def load_config(config_path=None):
    """
    Load configuration from a YAML file.

    The file may hold a ``trainer`` section (``TrainerConfig`` fields) and a
    ``simulation`` section for the batch runner. Missing sections or a missing
    file fall back to defaults.

    Args:
        config_path (str or Path): Path to the YAML file

    Returns:
        tuple: (TrainerConfig, simulation settings dict)
    """
    raw = {}
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path, 'r') as f:
                raw = yaml.safe_load(f) or {}
        else:
            logger.warning("Configuration file %s not found. Using defaults.", path)

    trainer = TrainerConfig.from_dict(raw.get('trainer'))

    simulation = dict(DEFAULT_SIMULATION)
    simulation['response_model'] = dict(DEFAULT_SIMULATION['response_model'])
    overrides = raw.get('simulation') or {}
    simulation['response_model'].update(overrides.pop('response_model', None) or {})
    simulation.update(overrides)

    return trainer, simulation
