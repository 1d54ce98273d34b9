"""
Command-line demo over the mock run source.

Usage:
    python -m runmetrics simulate [--calibrations N] [--cadence SPM] [--duration S]

Performs a series of simulated 100 m calibration runs at varied cadences,
then a monitored run at the chosen cadence, and prints what the engine saw.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import MetricsConfig
from .data.source import MockRunSource
from .monitor import create_monitor

logger = logging.getLogger("runmetrics")


def stride_for(cadence: float) -> float:
    """Synthetic runner: stride lengthens as cadence rises."""
    return 0.006 * cadence + 0.15


def run_calibrations(monitor, count: int, cadence: float, start: float, seed: int) -> float:
    """Run count calibrations spread around cadence; returns the end time."""
    target = monitor.config.calibration.target_distance
    now = start

    for i in range(count):
        run_cadence = cadence + (i - (count - 1) / 2) * 8.0
        speed = run_cadence / 60.0 * stride_for(run_cadence)
        source = MockRunSource(cadence=run_cadence, speed=speed, start_time=now, seed=seed + i)

        monitor.start_calibration(now)
        monitor.replay(source, now + target / speed + 2.0)
        end = now + target / speed + 2.0
        if monitor.session.is_running:
            monitor.stop_calibration(end)

        record = monitor.session.record
        if record is not None:
            print(f"Calibration {i + 1}: {record.total_steps} steps, "
                  f"{record.average_cadence:.1f} SPM, {record.average_step_length:.3f} m/step")
        else:
            print(f"Calibration {i + 1}: rejected")

        monitor.session.reset()
        now = end + 1.0

    return now


def configure_logging(config: MetricsConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def simulate(args: argparse.Namespace, config: MetricsConfig) -> int:
    monitor = create_monitor(config, store_directory=args.store_dir)

    model = monitor.calibrator.model
    if model is not None:
        print(f"Loaded stride model from {model.sample_count} records")

    now = run_calibrations(monitor, args.calibrations, args.cadence, 0.0, args.seed)

    model = monitor.calibrator.model
    if model is not None:
        print(f"Stride model: stride = {model.alpha:.5f} * cadence + {model.beta:.3f} "
              f"(R2 {model.r_squared:.3f}, n={model.sample_count})")
    else:
        print("No stride model yet")

    speed = args.cadence / 60.0 * stride_for(args.cadence)
    source = MockRunSource(cadence=args.cadence, speed=speed, start_time=now, seed=args.seed)

    monitor.on_metrics.append(
        lambda m: print(f"  t+{m.timestamp - now:5.1f}s  {m.cadence:5.1f} SPM  "
                        f"{m.total_steps:4d} steps  GPS {m.gps_distance:7.1f} m  "
                        f"stride {m.stride_distance:7.1f} m")
    )

    monitor.start_monitoring(now)
    monitor.replay(source, now + args.duration)
    summary = monitor.stop_monitoring(now + args.duration)

    print(f"Run: {summary.distance_km:.2f} km in {summary.formatted_duration}, "
          f"pace {summary.formatted_pace}/km, {summary.average_cadence:.1f} SPM, "
          f"{summary.total_steps} steps, {summary.average_heart_rate:.0f} BPM")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="runmetrics", description="Running-metrics engine")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sim = subparsers.add_parser("simulate", help="Simulate calibrations and a monitored run")
    sim.add_argument("--calibrations", type=int, default=5, help="Number of calibration runs")
    sim.add_argument("--cadence", type=float, default=160.0, help="Run cadence (SPM)")
    sim.add_argument("--duration", type=float, default=60.0, help="Monitored run length (s)")
    sim.add_argument("--store-dir", default=None, help="Directory for calibration JSON files")
    sim.add_argument("--log-dir", default=None, help="Directory for the event journal")
    sim.add_argument("--seed", type=int, default=42, help="Random seed")
    sim.set_defaults(func=simulate)

    args = parser.parse_args(argv)

    config = MetricsConfig(
        log_level=args.log_level,
        event_log_dir=Path(args.log_dir) if args.log_dir else None,
    )
    configure_logging(config)

    try:
        return args.func(args, config)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
