from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

from data.models import TrialResult


TRIAL_COLUMNS = (
    "trial_number",
    "participant_id",
    "task_type",
    "block",
    "stimulus",
    "stimulus_word",
    "stimulus_color",
    "congruent",
    "is_target",
    "trial_type",
    "response",
    "correct",
    "reaction_time_ms",
    "difficulty_level",
    "stimulus_duration_ms",
    "commission_error",
    "omission_error",
    "is_timeout",
)


def stimulus_descriptor(stimulus: Dict[str, Any]) -> str:
    # короткое описание стимула для таблицы: "RED/blue" или "X"
    if "word" in stimulus:
        return f"{stimulus['word']}/{stimulus['color']}"
    return str(stimulus.get("letter", ""))


def trial_record(result: TrialResult, participant_id: str = "") -> Dict[str, Any]:
    stim = result.stimulus
    return {
        "trial_number": result.trial_index + 1,
        "participant_id": participant_id,
        "task_type": result.task_type,
        "block": result.block_index,
        "stimulus": stimulus_descriptor(stim),
        "stimulus_word": stim.get("word", ""),
        "stimulus_color": stim.get("color", ""),
        "congruent": int(bool(stim.get("congruent", False))),
        # is_target есть только у n-back, trial_type (go/nogo) только у go/no-go
        "is_target": int(bool(stim["is_target"])) if "is_target" in stim else None,
        "trial_type": stim.get("trial_type", ""),
        "response": result.response,
        "correct": int(result.correct),
        "reaction_time_ms": result.rt_ms,
        "difficulty_level": result.difficulty_level,
        "stimulus_duration_ms": result.stimulus_duration_ms,
        "commission_error": int(result.commission_error),
        "omission_error": int(result.omission_error),
        "is_timeout": int(result.is_timeout),
    }


def write_trials_csv(path: Path, results: Iterable[TrialResult], participant_id: str = "") -> int:
    rows = [trial_record(r, participant_id) for r in results]
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=TRIAL_COLUMNS)
        writer.writeheader()
        for row in rows:
            # None в CSV пишем пустой ячейкой
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
    return len(rows)


def to_jsonl(path: Path, records: List[Dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")


def write_trials_jsonl(path: Path, results: Iterable[TrialResult], participant_id: str = "") -> int:
    records = [trial_record(r, participant_id) for r in results]
    to_jsonl(path, records)
    return len(records)
