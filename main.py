# main.py
"""
Entry point for Airflow Shaper.

Reads `config.json`, configures logging, builds the emitter, the obstacle
list and the particle simulation, then hands control to the pygame viewer.
The loop clamps the wall-clock frame delta, applies the playback speed and
ticks the simulation only while playing. A cProfile summary of the run is
written to the log on exit.
"""
import cProfile
import io
import logging
import pstats
from typing import Any, Dict, Optional, Tuple, TYPE_CHECKING

import numpy as np

from utils import load_config, setup_logging

if TYPE_CHECKING:
    from playback import PlaybackState
    from simulation import Simulation

CONFIG_PATH = 'config.json'


def build_scene(config: Dict[str, Any]) -> Optional[Tuple["Simulation", "PlaybackState"]]:
    """
    Builds the simulation and playback state from the config.

    Returns None (after logging the reason) when the scene is invalid.
    """
    from emitter import Emitter
    from obstacles import Obstacle
    from particle import ParticleSystem
    from playback import PlaybackState
    from simulation import FlowSettings, Simulation

    sim_params = config.get('simulation_parameters', {})
    run_params = config.get('run_control', {})

    try:
        emitter = Emitter.from_config(config.get('emitter', {}))
        obstacles = [Obstacle.from_config(entry) for entry in config.get('obstacles', [])]
        particles = ParticleSystem(sim_params)
        sim = Simulation(particles, emitter, obstacles, FlowSettings.from_params(sim_params))
        sim.restart()
    except (KeyError, ValueError) as e:
        logging.critical(f"Invalid scene configuration: {e}")
        return None

    logging.info(
        f"Scene ready: {len(obstacles)} obstacles "
        f"({', '.join(o.name for o in obstacles) or 'none'}), "
        f"{particles.max_particles} particles."
    )
    return sim, PlaybackState(run_params.get('playback_speed', 1.0))


def run_loop(sim, playback, visualizer, run_params: Dict[str, Any]) -> int:
    """Runs until the viewer closes or max_steps ticks have been simulated."""
    from constants import FPS

    log_throttle = max(1, int(run_params.get('log_throttle_steps', 300)))
    max_steps = int(run_params.get('max_steps', 20000))
    particles = sim.particles
    ticks = 0

    while ticks < max_steps:
        dt = playback.scaled_delta(visualizer.tick(FPS), sim.settings.time_scale)
        if dt > 0.0:
            sim.step(dt)
            ticks += 1
            # Throttled; this runs every frame.
            if ticks % log_throttle == 0:
                logging.info(f"Tick {ticks}/{max_steps}, simulated time {sim.time:.2f}s")
                logging.debug(
                    f"Tick {ticks} | mean off-lane {float(np.mean(particles.off_lane)):.4f} | "
                    f"contacts {int(np.count_nonzero(particles.contacts))} | "
                    f"mean impact weight {float(np.mean(particles.impact_weight)):.4f}"
                )

        if not visualizer.draw(particles, sim, playback):
            break
    else:
        logging.info(f"Reached max_steps ({max_steps}). Stopping simulation.")
    return ticks


def log_profile(profiler: cProfile.Profile, limit: int = 20) -> None:
    buffer = io.StringIO()
    pstats.Stats(profiler, stream=buffer).sort_stats('cumtime').print_stats(limit)
    logging.info(f"--- Performance Profile ---\n{buffer.getvalue()}")


def main():
    # Logging is configured from the file, so a load failure can only be printed.
    try:
        config = load_config(CONFIG_PATH)
    except (OSError, ValueError) as e:
        print(f"FATAL: Could not load {CONFIG_PATH}. Error: {e}")
        return

    setup_logging(config)
    logging.info("--- Airflow Shaper Starting ---")

    scene = build_scene(config)
    if scene is None:
        return
    sim, playback = scene

    from visualization import Visualizer
    visualizer = Visualizer(config.get('visualization', {}))

    profiler = cProfile.Profile()
    profiler.enable()
    try:
        ticks = run_loop(sim, playback, visualizer, config.get('run_control', {}))
    finally:
        profiler.disable()
        visualizer.close()

    logging.info(f"Simulation loop finished after {ticks} ticks.")
    log_profile(profiler)
    logging.info("--- Airflow Shaper Shutting Down ---")


if __name__ == "__main__":
    main()
