"""Taping simulation and schedule search entry point.

Two modes:
    1. Direct simulation (default):
        - Load sim-config.json and shell-config.json
        - Rasterize the schedule into a layermap
        - Save layermap.png (greyscale layer counts) and heatmap.png (density)
        - Optionally report the error against a target layer count (-e)
    2. Search (--find):
        - Load sim-config.json including its "SearchConfig" section
        - Run the evolutionary search on a worker pool
        - Rewrite best-config.json after every generation

Refactored architecture:
    - simulate_main(...) → dict
        * Callable (used by tests and notebooks)
        * Returns: {layermap, layermap_path, heatmap_path, error, seconds}
    - find_main(...) → dict
        * Returns: {best_config_path, best_fitness, generations, history}
    - CLI entry point: main(argv) → exit status

CLI:
    python scripts/simulate.py -i configs/sim-config.json -s configs/shell-config.json -e 4
    python scripts/simulate.py --find -i configs/sim-config.json --workers 8 --seed 7

Exit status:
    0 on success, 1 on configuration errors or unwritable outputs.

Output structure:
    <output_dir>/
        layermap.png
        heatmap.png
        best-config.json      (--find only)
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import numpy as np

from shell_taping.evolution import EvolutionSimulation
from shell_taping.taping_simulator import ShellSimulation
from shell_taping.utils import color, fs, metrics, validators
from shell_taping.utils.compute import WorkerPool
from shell_taping.utils.logging_config import install_excepthook, setup_logging
from shell_taping.utils.profiler import timer

logger = logging.getLogger(__name__)

DEFAULT_SIM_CONFIG = "sim-config.json"
DEFAULT_SHELL_CONFIG = "shell-config.json"
DEFAULT_WORKERS = 16


def simulate_main(
    sim_config_path: str = DEFAULT_SIM_CONFIG,
    shell_config_path: str = DEFAULT_SHELL_CONFIG,
    output_dir: str = ".",
    target_layers: Optional[int] = None,
) -> Dict[str, Any]:
    """Simulate one shell schedule and write its images.

    Parameters
    ----------
    sim_config_path : str
        Simulation config (JSON or YAML)
    shell_config_path : str
        Shell schedule file
    output_dir : str
        Directory for layermap.png and heatmap.png
    target_layers : int, optional
        When positive, the layermap error against this target is computed

    Returns
    -------
    dict
        {layermap, layermap_path, heatmap_path, error, seconds}

    Raises
    ------
    ConfigError
        If either config is missing, malformed or invalid
    RuntimeError
        If an output image cannot be written
    """
    sim_cfg = validators.load_simulation_config(sim_config_path)
    shell_cfg = validators.load_shell_config(shell_config_path)
    size = sim_cfg.layermap_size

    logger.info(
        f"Simulating {shell_cfg.num_angles} angles on a {size}x{size} layermap "
        f"(step {sim_cfg.step:.5f} rad)"
    )

    elapsed = {}
    simulator = ShellSimulation(sim_cfg)
    with timer("simulate", sink=lambda name, t: elapsed.__setitem__(name, t)):
        layermap = simulator.simulate_taping(shell_cfg)

    out_path = fs.ensure_dir(output_dir)
    heatmap_path = out_path / "heatmap.png"
    layermap_path = out_path / "layermap.png"
    fs.atomic_save_image(color.layermap_to_heatmap(layermap, size), heatmap_path)
    fs.atomic_save_image(color.layermap_to_grey(layermap, size), layermap_path)

    stats = metrics.layer_statistics(layermap)
    logger.info(
        f"Finished simulation in {elapsed['simulate']:.3f} s and wrote \"{heatmap_path}\" and "
        f"\"{layermap_path}\" (covered {stats['covered_fraction']:.1%}, "
        f"layers {stats['min']}..{stats['max']})"
    )

    error = None
    if target_layers is not None and target_layers > 0:
        error = simulator.compute_layermap_error(target_layers, layermap)
        logger.info(f"Error of simulation is: {error:.4f}")

    return {
        'layermap': layermap,
        'layermap_path': str(layermap_path),
        'heatmap_path': str(heatmap_path),
        'error': error,
        'seconds': elapsed['simulate'],
    }


def find_main(
    sim_config_path: str = DEFAULT_SIM_CONFIG,
    output_dir: str = ".",
    workers: int = DEFAULT_WORKERS,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    """Search for the best schedule and keep best-config.json up to date.

    Parameters
    ----------
    sim_config_path : str
        Simulation config with a "SearchConfig" section
    output_dir : str
        Directory for best-config.json
    workers : int
        Fitness worker threads
    seed : int, optional
        Seed for the selection random source; unseeded when None

    Returns
    -------
    dict
        {best_config_path, best_fitness, generations, history}
    """
    sim_cfg = validators.load_simulation_config(sim_config_path)
    evo_cfg = validators.load_evolution_config(sim_config_path)

    best_path = fs.ensure_dir(output_dir) / "best-config.json"
    rng = np.random.RandomState(seed)

    with WorkerPool(workers) as pool:
        search = EvolutionSimulation(sim_cfg, evo_cfg, pool, rng=rng, output_path=best_path)
        best = search.run()

    return {
        'best_config_path': str(best_path),
        'best_fitness': best.fitness if best is not None else None,
        'generations': search.generation,
        'history': search.history,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulate tape winding on a hemispherical shell, or search for the best schedule"
    )
    parser.add_argument(
        "--find",
        action="store_true",
        help="Run an algorithm to find the best taping method given the configured parameters",
    )
    parser.add_argument(
        "-i",
        dest="sim_config",
        type=str,
        default=DEFAULT_SIM_CONFIG,
        metavar="FILE",
        help=f"Simulation config file (default: {DEFAULT_SIM_CONFIG})",
    )
    parser.add_argument(
        "-s",
        dest="shell_config",
        type=str,
        default=DEFAULT_SHELL_CONFIG,
        metavar="FILE",
        help=f"Shell config file (default: {DEFAULT_SHELL_CONFIG})",
    )
    parser.add_argument(
        "-e",
        dest="target_layers",
        type=int,
        default=None,
        metavar="LAYERS",
        help="Calculate the error of the shell config given a number of layers",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=".",
        help="Directory for output images / best-config.json",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Fitness worker threads for --find (default: {DEFAULT_WORKERS})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the search's random source",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Optional log file",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Write log records as JSON lines",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit status."""
    args = build_parser().parse_args(argv)

    setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        json=args.json_logs,
        quiet_libs=["PIL"],
        context={"app": "find" if args.find else "simulate"},
    )
    install_excepthook()

    try:
        if args.find:
            find_main(
                sim_config_path=args.sim_config,
                output_dir=args.output_dir,
                workers=args.workers,
                seed=args.seed,
            )
        else:
            simulate_main(
                sim_config_path=args.sim_config,
                shell_config_path=args.shell_config,
                output_dir=args.output_dir,
                target_layers=args.target_layers,
            )
    except validators.ConfigError as e:
        logger.error(str(e))
        return 1
    except RuntimeError as e:
        logger.error(f"Failed to write output: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
