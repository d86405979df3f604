from __future__ import annotations

from typing import Dict, Iterable, List

from config.settings import TASK_GONOGO, TASK_NBACK, TASK_STROOP
from data.models import TrialResult


def task_title(task_type: str) -> str:
    return {
        TASK_STROOP: "Color Naming Task",
        TASK_NBACK: "Working Memory Task (2-Back)",
        TASK_GONOGO: "Impulse Control Task",
    }.get(task_type, task_type)


def compute_accuracy(window: List[TrialResult]) -> float:
    if not window:
        return 0.0
    return sum(1 for r in window if r.correct) / len(window)


def compute_mean_rt(window: List[TrialResult]) -> float:
    rts = [r.rt_ms for r in window if r.rt_ms is not None]
    if not rts:
        return 0.0
    return sum(rts) / len(rts)


def motivational_message(block_accuracy: float) -> str:
    if block_accuracy >= 0.9:
        return "Excellent work! You're performing at a high level!"
    if block_accuracy >= 0.75:
        return "Great job! You're doing well!"
    if block_accuracy >= 0.6:
        return "Good effort! Keep focusing on accuracy."
    return "Take your time and focus on getting the correct responses."


def count_by_task(results: Iterable[TrialResult]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for r in results:
        counts[r.task_type] = counts.get(r.task_type, 0) + 1
    return counts


def compute_congruency_effect(results: List[TrialResult]) -> float:
    """Средний RT неконгруэнтных минус конгруэнтных (только верные stroop-ответы)."""
    congruent = []
    incongruent = []
    for r in results:
        if r.task_type != TASK_STROOP or not r.correct or r.rt_ms is None:
            continue
        if r.stimulus.get("congruent"):
            congruent.append(r.rt_ms)
        else:
            incongruent.append(r.rt_ms)
    if not congruent or not incongruent:
        return 0.0
    return (sum(incongruent) / len(incongruent)) - (sum(congruent) / len(congruent))


def count_errors(results: Iterable[TrialResult]) -> Dict[str, int]:
    commission = 0
    omission = 0
    for r in results:
        commission += int(r.commission_error)
        omission += int(r.omission_error)
    return {"commission_errors": commission, "omission_errors": omission}
