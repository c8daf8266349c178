"""
FlickCatch Simulation: Headless Runner

Drives complete throws through the state machine at a fixed frame rate and
prints a summary. Useful for checking a config change without a device.

Usage:
    python -m capture_sim.simulate --throws 5
    python -m capture_sim.simulate --throws 3 --fps 120 --no-creature
    python -m capture_sim.simulate --config my_capture.yaml --seed 7 -v
"""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from capture_sim.config import load_config
from capture_sim.errors import InvalidTransition
from capture_sim.state_machine import Phase, ThrowStateMachine

console = Console()
logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Route library logs through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def run_throw(
    machine: ThrowStateMachine,
    fps: float = 60.0,
    aim_at_creature: bool = True,
) -> dict:
    """Arm one throw from the ball's home position and tick until the roll ends.

    Returns a dict with: phases, ticks, flight_time, landing, rest, final,
    captured, hit, closest_approach.
    """
    dt = 1.0 / fps
    phases = [machine.current_phase()]
    recorder = machine.subscribe("phase_changed", lambda old, new: phases.append(new))
    try:
        start = machine.current_ball_position()
        creature = machine.creature_position() if aim_at_creature else None
        launch = machine.arm(start, creature)

        cfg = machine.config
        max_ticks = int(np.ceil(
            (launch.duration + cfg["settle_delay"] + cfg["roll_duration"]) * fps
        )) + 3

        ticks = 0
        while ticks < max_ticks:
            machine.advance(dt)
            ticks += 1
            throw = machine.throw_state
            if throw.phase is Phase.SETTLING and throw.roll.is_finished(machine.clock - throw.settled_at):
                break
    finally:
        machine.unsubscribe("phase_changed", recorder)

    throw = machine.throw_state
    outcome = throw.outcome
    return {
        "phases": [p.value for p in phases],
        "ticks": ticks,
        "flight_time": throw.elapsed,
        "landing": throw.landing_position,
        "rest": throw.rest_position,
        "final": machine.current_ball_position(),
        "captured": outcome.captured,
        "hit": outcome.hit,
        "closest_approach": outcome.closest_approach,
    }


def run_session(
    n_throws: int = 5,
    config: Optional[dict] = None,
    seed: int = 42,
    fps: float = 60.0,
    aim_at_creature: bool = True,
) -> List[dict]:
    """Run `n_throws` throws back to back, resetting between them."""
    machine = ThrowStateMachine(config=config, seed=seed)
    results = []
    for i in range(n_throws):
        try:
            results.append(run_throw(machine, fps=fps, aim_at_creature=aim_at_creature))
        except InvalidTransition as exc:
            logger.warning("Throw %d skipped: %s", i + 1, exc)
        logger.debug("Arena after throw %d:\n%s", i + 1, machine.arena.to_json())
        machine.reset()
    return results


def print_summary(results: List[dict]) -> None:
    table = Table(title="Throw Summary")
    table.add_column("#", style="cyan")
    table.add_column("Phases")
    table.add_column("Flight (s)", style="yellow")
    table.add_column("Landing (x, y, z)", style="green")
    table.add_column("Rolled to (x, y, z)", style="green")
    table.add_column("Captured")
    table.add_column("Arc hit")

    for i, r in enumerate(results, start=1):
        land, final = r["landing"], r["final"]
        table.add_row(
            str(i),
            " → ".join(r["phases"]),
            f"{r['flight_time']:.3f}",
            f"({land[0]:.3f}, {land[1]:.3f}, {land[2]:.3f})",
            f"({final[0]:.4f}, {final[1]:.4f}, {final[2]:.4f})",
            "✅" if r["captured"] else "-",
            "✅" if r["hit"] else "-",
        )

    console.print()
    console.print(table)
    captured = sum(1 for r in results if r["captured"])
    console.print(f"  Captured: {captured}/{len(results)}")
    console.print()


# ---------- CLI ----------
def main():
    parser = argparse.ArgumentParser(description="FlickCatch headless throw runner")
    parser.add_argument("--throws", type=int, default=5,
                        help="Number of throws to simulate")
    parser.add_argument("--fps", type=float, default=60.0,
                        help="Tick rate")
    parser.add_argument("--seed", type=int, default=42,
                        help="Seed for the roll impulse")
    parser.add_argument("--config", type=Path, default=None,
                        help="Path to a capture YAML config")
    parser.add_argument("--no-creature", action="store_true",
                        help="Throw at the fallback target instead of the creature")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    args = parser.parse_args()

    configure_logging(args.verbose)
    config = load_config(args.config)
    console.print("\n[bold cyan]FlickCatch Headless Run[/bold cyan]\n")
    results = run_session(
        n_throws=args.throws,
        config=config,
        seed=args.seed,
        fps=args.fps,
        aim_at_creature=not args.no_creature,
    )
    print_summary(results)


if __name__ == "__main__":
    main()
