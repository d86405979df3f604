from dataclasses import dataclass
from pathlib import Path
from typing import Any

from backend.app.db import read_events

EVENT_TRIAL_RESULT = "trial_result"
EVENT_SESSION_END = "session_end"


@dataclass
class ParticipantAgg:
    participant_id: str
    sessions: int = 0
    completed_sessions: int = 0
    total_trials: int = 0
    correct_trials: int = 0
    rt_weighted_sum: float = 0.0
    rt_weight: int = 0
    final_level: int = 1
    adjustments: int = 0

    def add_session(self, payload: dict[str, Any]) -> None:
        trials = int(payload.get("total_trials", 0) or 0)
        mean_rt = float(payload.get("mean_rt", 0.0) or 0.0)

        self.sessions += 1
        self.completed_sessions += 1 if payload.get("completed") else 0
        self.total_trials += max(0, trials)
        self.correct_trials += max(0, int(payload.get("correct_trials", 0) or 0))
        if mean_rt > 0 and trials > 0:
            self.rt_weighted_sum += trials * mean_rt
            self.rt_weight += trials
        # последний уровень последней сессии
        self.final_level = int(payload.get("final_level", self.final_level) or 1)
        self.adjustments += int(payload.get("total_adjustments", 0) or 0)

    def to_row(self) -> dict[str, Any]:
        accuracy = self.correct_trials / self.total_trials if self.total_trials > 0 else 0.0
        mean_rt = (self.rt_weighted_sum / self.rt_weight) if self.rt_weight > 0 else 0.0
        return {
            "participant_id": self.participant_id,
            "sessions": int(self.sessions),
            "completed_sessions": int(self.completed_sessions),
            "total_trials": int(self.total_trials),
            "accuracy_pct": round(accuracy * 100.0, 2),
            "mean_rt_ms": round(mean_rt, 1),
            "final_level": int(self.final_level),
            "adjustments": int(self.adjustments),
        }


def build_participant_rows(db_path: Path, limit: int = 100) -> list[dict[str, Any]]:
    events = read_events(db_path, event_type=EVENT_SESSION_END, limit=5000)
    participants: dict[str, ParticipantAgg] = {}
    for event in events:
        pid = str(event.get("participant_id") or "").strip() or "unknown"
        agg = participants.setdefault(pid, ParticipantAgg(participant_id=pid))
        agg.add_session(event["payload"])

    rows = [agg.to_row() for agg in participants.values()]
    rows.sort(key=lambda r: (-int(r["total_trials"]), r["participant_id"]))
    if limit > 0:
        rows = rows[:limit]
    return rows


def trials_for_participant(db_path: Path, participant_id: str, limit: int = 5000) -> list[dict[str, Any]]:
    events = read_events(db_path, event_type=EVENT_TRIAL_RESULT, participant_id=participant_id, limit=limit)
    return [event["payload"] for event in events]


def accuracy_by_task(trials: list[dict[str, Any]]) -> dict[str, float]:
    totals: dict[str, int] = {}
    correct: dict[str, int] = {}
    for t in trials:
        task = str(t.get("task_type", "unknown"))
        totals[task] = totals.get(task, 0) + 1
        correct[task] = correct.get(task, 0) + int(bool(t.get("correct")))
    return {task: correct[task] / totals[task] for task in totals}
