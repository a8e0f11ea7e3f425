"""Command line helpers for running the depth adjustment experiment."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import ExperimentConfig
from .design import TrialDesignGenerator


DEFAULT_PARTICIPANT = ExperimentConfig.__dataclass_fields__["participant_id"].default
DEFAULT_DATA_DIR = ExperimentConfig.__dataclass_fields__["results_directory"].default
DEFAULT_CONFIRM_KEY = ExperimentConfig.__dataclass_fields__["confirm_key"].default
DEFAULT_SERIAL_BAUD = ExperimentConfig.__dataclass_fields__[
    "participant_serial_baud"
].default


def build_arg_parser() -> argparse.ArgumentParser:
    """Create an argument parser exposing minimal runtime options."""

    parser = argparse.ArgumentParser(
        description=(
            "Launch the depth adjustment task: practice trials followed by 40 "
            "randomised main trials, saved as one CSV per session."
        )
    )
    parser.add_argument(
        "--participant",
        type=str,
        default=DEFAULT_PARTICIPANT,
        help="Participant ID embedded in the data filename (default: %(default)s).",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path(DEFAULT_DATA_DIR),
        help="Folder where the session CSV will be saved (default: %(default)s).",
    )
    parser.add_argument(
        "--auto-start",
        action="store_true",
        help="Skip the initial 'press to begin' screen.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the main trial order (default: random).",
    )
    parser.add_argument(
        "--confirm-key",
        type=str,
        default=DEFAULT_CONFIRM_KEY,
        help="Keyboard key used to confirm and submit (default: %(default)s).",
    )
    parser.add_argument(
        "--participant-serial-port",
        type=str,
        default=None,
        help=(
            "Serial COM port of a participant keypad that also confirms (e.g., COM1). "
            "If omitted only the keyboard is used."
        ),
    )
    parser.add_argument(
        "--participant-serial-baud",
        type=int,
        default=DEFAULT_SERIAL_BAUD,
        help="Baud rate for the participant serial keypad (default: %(default)s).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Run in a small window instead of full screen.",
    )
    parser.add_argument(
        "--session-info",
        action="store_true",
        help="Also save a JSON file describing the session next to the CSV.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: %(default)s).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the practice and main trial design and exit without PsychoPy.",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ExperimentConfig:
    config = ExperimentConfig(
        participant_id=args.participant,
        results_directory=str(args.data_dir),
        auto_start=args.auto_start,
        random_seed=args.seed,
        confirm_key=args.confirm_key,
        confirm_label=args.confirm_key.upper(),
        participant_serial_port=args.participant_serial_port,
        participant_serial_baud=args.participant_serial_baud,
        debug_mode=args.debug,
        save_session_info=args.session_info,
    )
    config.validate()
    return config


def main(argv: list[str] | None = None) -> None:
    """Parse command line options and execute the experiment."""

    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = config_from_args(args)
    if args.dry_run:
        perform_dry_run(config)
        return

    # PsychoPy is only needed for a live session.
    from .experiment import DepthAdjustmentExperiment
    from .controller import Phase

    controller = DepthAdjustmentExperiment(config).run()
    if controller.save_error is not None:
        print(f"Error: {controller.save_error}", file=sys.stderr)
        raise SystemExit(1)
    if controller.phase is Phase.ABORTED:
        print("Session aborted; no data saved.")
        return
    print(f"Data saved to: {controller.saved_path}")


def perform_dry_run(config: ExperimentConfig) -> None:
    """Print the trial design for ``config`` and exit."""

    design = TrialDesignGenerator.from_seed(config.random_seed)
    practice = design.generate_practice_trials()
    main_trials = design.generate_main_trials()

    seed = config.random_seed if config.random_seed is not None else "random"
    print(f"Dry-run: participant {config.participant_id}, seed {seed}.")
    print(f"Practice trials ({len(practice)}):")
    for index, trial in enumerate(practice, start=1):
        print(
            f"  [P{index}] R1={trial.r1:.2f} R2={trial.r2:.2f} "
            f"speed={trial.rotation_speed:.0f} dir={trial.direction.value}"
        )
    print(f"Main trials ({len(main_trials)}):")
    for index, trial in enumerate(main_trials):
        print(
            f"  [{index:03}] R1={trial.r1:.2f} R2={trial.r2:.2f} "
            f"speed={trial.rotation_speed:.0f} dir={trial.direction.value}"
        )
        if (index + 1) % config.break_every == 0 and index + 1 < len(main_trials):
            print("        -- break --")
    print("Dry-run complete.")


if __name__ == "__main__":  # pragma: no cover - module level CLI hook
    main(sys.argv[1:])
