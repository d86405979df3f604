from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from data.models import TrialSpec


@dataclass(frozen=True)
class Scoring:
    correct: bool
    commission_error: bool = False
    omission_error: bool = False


class TaskPolicy:
    """
    Всё, чем парадигмы отличаются друг от друга.
    Тайминги и фазы живут в TrialStateMachine, здесь только правила.
    """

    task_type: str = "BASE"
    # False: ответ запоминаем, но окно ответа дожидаемся до конца
    ends_on_response: bool = True

    def accepts(self, spec: TrialSpec, key: str) -> bool:
        return key in spec.valid_responses

    def score(self, spec: TrialSpec, response: Optional[str], rt_ms: Optional[int]) -> Scoring:
        raise NotImplementedError

    def describe(self, spec: TrialSpec) -> Dict[str, Any]:
        return asdict(spec.stimulus)

    def feedback_text(self, spec: TrialSpec, scoring: Scoring, is_timeout: bool) -> str:
        if scoring.correct:
            return "Correct!"
        if is_timeout:
            return "Too slow!"
        return "Incorrect"
