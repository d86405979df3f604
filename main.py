import argparse
from pathlib import Path

from config.settings import ConfigError, load_experiment_config
from experiment.app import ExperimentApp


def main() -> None:
    parser = argparse.ArgumentParser(description="Adaptive Cognitive Control Task")
    parser.add_argument("--participant", default="anonymous", help="Participant id written to every record")
    parser.add_argument("--config", default=None, help="JSON file with config overrides")
    parser.add_argument("--seed", type=int, default=None, help="Seed for stimulus generation")
    args = parser.parse_args()

    try:
        config = load_experiment_config(Path(args.config) if args.config else None)
    except ConfigError as exc:
        raise SystemExit(f"Invalid config: {exc}") from exc

    app = ExperimentApp(config, participant_id=args.participant, seed=args.seed)
    summary = app.run()

    if summary is None:
        print("Session not started")
        return
    print("Session finished" if summary.completed else "Session aborted")
    print(
        f"trials={summary.total_trials} accuracy={summary.accuracy_total:.2f} "
        f"mean_rt={summary.mean_rt:.0f}ms final_level={summary.final_level} "
        f"adjustments={summary.total_adjustments}"
    )


if __name__ == "__main__":
    main()
