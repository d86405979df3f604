import argparse
import csv
from pathlib import Path
from typing import Any, Optional

from backend.app.db import read_events
from backend.app.sessions import EVENT_SESSION_END, EVENT_TRIAL_RESULT
from data.export import TRIAL_COLUMNS, to_jsonl


def export_trials(
    db_path: Path,
    trials_out: Path,
    sessions_out: Optional[Path],
    participant_id: Optional[str] = None,
) -> tuple[int, int]:
    """Выгружает trial-ы из SQLite в CSV, а итоги сессий в JSONL."""
    if not db_path.exists():
        raise FileNotFoundError(f"SQLite db not found: {db_path}")

    trials: list[dict[str, Any]] = []
    offset = 0
    while True:
        page = read_events(
            db_path, event_type=EVENT_TRIAL_RESULT, participant_id=participant_id, limit=5000, offset=offset
        )
        trials.extend(event["payload"] for event in page)
        if len(page) < 5000:
            break
        offset += len(page)

    trials_out.parent.mkdir(parents=True, exist_ok=True)
    with trials_out.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=TRIAL_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        for row in trials:
            writer.writerow({k: ("" if row.get(k) is None else row.get(k)) for k in TRIAL_COLUMNS})

    sessions_n = 0
    if sessions_out is not None:
        events = read_events(db_path, event_type=EVENT_SESSION_END, participant_id=participant_id, limit=5000)
        records = [event["payload"] for event in events]
        to_jsonl(sessions_out, records)
        sessions_n = len(records)
    return len(trials), sessions_n


def main() -> None:
    project_root = Path(__file__).resolve().parents[2]
    default_db = project_root / "backend" / "data" / "trials.db"
    default_trials = project_root / "data" / "export" / "trials.csv"
    default_sessions = project_root / "data" / "export" / "sessions.jsonl"

    parser = argparse.ArgumentParser(description="Export ingested trial results into CSV / JSONL files")
    parser.add_argument("--db", default=str(default_db), help="Path to backend SQLite db")
    parser.add_argument("--trials-out", default=str(default_trials), help="Output CSV for trial records")
    parser.add_argument("--sessions-out", default=str(default_sessions), help="Output JSONL for session summaries")
    parser.add_argument("--participant", default=None, help="Only export this participant")
    args = parser.parse_args()

    trials_n, sessions_n = export_trials(
        db_path=Path(args.db),
        trials_out=Path(args.trials_out),
        sessions_out=Path(args.sessions_out) if args.sessions_out else None,
        participant_id=args.participant,
    )
    print(f"Export complete: trials={trials_n}, sessions={sessions_n}")


if __name__ == "__main__":
    main()
