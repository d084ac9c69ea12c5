"""Batch simulation of autopilot sessions across synthetic listeners."""
# Standard library imports
import logging
from itertools import product
from typing import Dict, List, Optional

# Third-party imports
import numpy as np
import pandas as pd
from tqdm import tqdm

# Local imports
from .autopilot import ProcedureAutopilot
from .hearing_level_gen import generate_reference_profile
from .patient import SimulatedPatient
from .response_model import HearingResponseModel
from ..analysis.results import results_to_dataframe
from ..procedures.interfaces import StaticReferenceProvider
from ..procedures.session import SessionManager
from ..utils.config import DEFAULT_SIMULATION, TrainerConfig

logger = logging.getLogger(__name__)


class BatchSimulator:
    def __init__(self, trainer_config: Optional[TrainerConfig] = None,
                 simulation: Optional[Dict] = None):
        """
        Initialize the simulator.

        Args:
            trainer_config (TrainerConfig): Engine settings for every session
            simulation (dict): ``simulation`` section of the YAML config
        """
        self.trainer_config = trainer_config or TrainerConfig()
        self.settings = dict(DEFAULT_SIMULATION)
        self.settings.update(simulation or {})
        self.rng = np.random.default_rng(self.settings['seed'])
        self.response_model = HearingResponseModel.from_dict(self.settings['response_model'])

    def generate_profiles(self) -> List[tuple]:
        """One (listener id, shape, profile) per listener, shapes cycled in order."""
        shapes = self.settings['profile_shapes']
        profiles = []
        for i in range(self.settings['n_listeners']):
            shape = shapes[i % len(shapes)]
            profile = generate_reference_profile(
                shape=shape,
                base_level=int(self.rng.integers(0, 30)),
                severity=int(self.rng.integers(10, 50)),
                air_bone_gap=self.settings['air_bone_gap'],
                seed=int(self.rng.integers(0, 2**31 - 1)),
            )
            profiles.append((f"listener-{i + 1:03d}", shape, profile))
        return profiles

    def _simulate_single_case(self, case) -> List[Dict]:
        (listener_id, shape, profile), repeat = case
        manager = SessionManager(
            config=self.trainer_config,
            reference_provider=StaticReferenceProvider({listener_id: profile}),
        )
        manager.start_session(listener_id)
        patient = SimulatedPatient(profile, self.response_model,
                                   seed=int(self.rng.integers(0, 2**31 - 1)),
                                   patient_id=listener_id)
        result, progressions = ProcedureAutopilot(manager, patient).run()

        n_presentations = sum(len(p) for p in progressions.values())
        frame = results_to_dataframe(result)
        frame['error'] = frame['difference']
        frame['listener'] = listener_id
        frame['profile_shape'] = shape
        frame['repeat'] = repeat
        frame['accuracy'] = result.accuracy
        frame['n_presentations'] = n_presentations
        frame['n_technical_errors'] = len(result.technical_errors)
        return frame.to_dict('records')

    def run(self, show_progress=True) -> pd.DataFrame:
        """Run every listener x repeat case and return one row per position."""
        cases = list(product(self.generate_profiles(), range(self.settings['n_repeats'])))
        logger.info("Simulating %d sessions", len(cases))

        rows = []
        for case in tqdm(cases, desc="Simulating sessions", unit="session",
                         disable=not show_progress):
            rows.extend(self._simulate_single_case(case))
        return pd.DataFrame(rows)

    @staticmethod
    def summarize(df: pd.DataFrame) -> pd.DataFrame:
        """Mean/std of threshold error and session accuracy per profile shape."""
        return df.groupby('profile_shape').agg({
            'error': ['mean', 'std'],
            'accuracy': ['mean'],
            'n_presentations': ['mean'],
        }).round(2)
