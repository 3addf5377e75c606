"""
Headless evolution run.

Loads a run configuration, evolves for a fixed number of epochs and
optionally saves the best genotype of the final epoch.

Usage:
    python scripts/run_evolution.py --config data/run.yaml --epochs 20 --save-dir populations
"""

import argparse
import time
from dataclasses import replace
from pathlib import Path

from particle_life.loader import load_run_config, validate_run_config
from particle_life.persistence import make_saved_population, save_population
from particle_life.scheduler import EpochScheduler


REPO_ROOT = Path(__file__).resolve().parent.parent


def parse_args():
    parser = argparse.ArgumentParser(description="Evolve particle life force rules")
    parser.add_argument('--config', type=Path, default=REPO_ROOT / 'data' / 'run.yaml',
                        help="Run configuration YAML")
    parser.add_argument('--schemas', type=Path, default=REPO_ROOT / 'schemas',
                        help="Directory holding run.schema.json")
    parser.add_argument('--epochs', type=int, default=10, help="Epochs to run")
    parser.add_argument('--seed', type=int, default=None, help="Override the configured seed")
    parser.add_argument('--workers', type=int, default=None, help="Override worker threads")
    parser.add_argument('--save-dir', type=Path, default=None,
                        help="Save the final best genotype here")
    parser.add_argument('--name', default='best', help="Name for the saved genotype")
    parser.add_argument('--quiet', action='store_true', help="Only print the final summary")
    return parser.parse_args()


def main():
    """Run the evolution loop from the command line."""
    args = parse_args()

    config = load_run_config(args.config, args.schemas)
    overrides = {}
    if args.seed is not None:
        overrides['seed'] = args.seed
    if args.workers is not None:
        overrides['workers'] = args.workers
    if overrides:
        config = validate_run_config(replace(config, **overrides))

    print("=" * 80)
    print(f"Particle Life Evolution: {args.epochs} epochs, seed {config.seed}")
    print("=" * 80)

    scheduler = EpochScheduler(config, verbose=not args.quiet)
    start = time.perf_counter()
    try:
        results = scheduler.run(max_epochs=args.epochs)
    finally:
        scheduler.close()
    elapsed = time.perf_counter() - start

    print()
    print("| Epoch |     Best |  Average |   Median |")
    print("|-------|----------|----------|----------|")
    for r in results:
        print(f"| {r.epoch:5d} | {r.stats.best_score:8.3f} | {r.stats.average_score:8.3f} | "
              f"{r.stats.median_score:8.3f} |")
    print()
    print(f"[OK] {len(results)} epochs in {elapsed:.1f}s")

    if args.save_dir is not None and results:
        final = results[-1]
        saved = make_saved_population(final.best_genome, final.stats.best_score, config,
                                      name=args.name, epoch=final.epoch)
        path = save_population(saved, args.save_dir)
        print(f"[OK] Saved best genotype to {path}")


if __name__ == '__main__':
    main()
