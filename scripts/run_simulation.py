#!/usr/bin/env python3
"""
Batch simulation script for the Hughson-Westlake trainer.

Generates synthetic listeners, runs an autopilot examiner through a full
session for each of them and writes per-position threshold errors to CSV.
"""

import argparse
import logging
from pathlib import Path

from audiometry_trainer.simulation import BatchSimulator
from audiometry_trainer.utils.config import load_config


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run audiometry trainer simulation study')
    parser.add_argument('--config', type=str,
                        default='configs/default.yaml',
                        help='Path to configuration file')
    parser.add_argument('--n-listeners', type=int,
                        help='Number of listeners to simulate')
    parser.add_argument('--seed', type=int,
                        help='Random seed')
    parser.add_argument('--output', type=str,
                        default='results/simulation_results.csv',
                        help='Where to write the per-position results')
    parser.add_argument('--log-level', type=str, default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging verbosity')
    parser.add_argument('--no-progress', action='store_true',
                        help='Disable the progress bar')

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    trainer_config, simulation = load_config(args.config)

    # Override with command line arguments
    if args.n_listeners:
        simulation['n_listeners'] = args.n_listeners
    if args.seed is not None:
        simulation['seed'] = args.seed

    print(f"Running simulation with {simulation['n_listeners']} listeners "
          f"x {simulation['n_repeats']} repeats")

    simulator = BatchSimulator(trainer_config, simulation)
    results_df = simulator.run(show_progress=not args.no_progress)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    results_df.to_csv(output, index=False)

    print("Simulation completed successfully!")
    print(f"Results written to {output}")
    print(BatchSimulator.summarize(results_df))


if __name__ == "__main__":
    main()
