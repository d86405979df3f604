from typing import Any, Dict, Optional

from config.settings import TASK_GONOGO
from data.models import LetterStimulus, TrialSpec
from experiment.tasks.base import Scoring, TaskPolicy


GO_KEY = "space"


class InhibitionPolicy(TaskPolicy):
    task_type = TASK_GONOGO
    ends_on_response = False

    def score(self, spec: TrialSpec, response: Optional[str], rt_ms: Optional[int]) -> Scoring:
        stimulus: LetterStimulus = spec.stimulus
        responded = response is not None
        if stimulus.is_go:
            in_window = responded and rt_ms is not None and rt_ms <= spec.response_window_ms
            return Scoring(correct=in_window, omission_error=not responded)
        return Scoring(correct=not responded, commission_error=responded)

    def describe(self, spec: TrialSpec) -> Dict[str, Any]:
        stimulus: LetterStimulus = spec.stimulus
        return {"letter": stimulus.letter, "trial_type": "go" if stimulus.is_go else "nogo"}

    def feedback_text(self, spec: TrialSpec, scoring: Scoring, is_timeout: bool) -> str:
        is_go = spec.stimulus.is_go
        if scoring.correct:
            return "Correct!" if is_go else "Correct (no response)"
        if is_go:
            return "Too slow!"
        return "Incorrect - should not respond!"
