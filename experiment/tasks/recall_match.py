from typing import Any, Dict, Optional

from config.settings import TASK_NBACK
from data.models import LetterStimulus, TrialSpec
from experiment.tasks.base import Scoring, TaskPolicy


MATCH_KEY = "f"
NO_MATCH_KEY = "j"
RECALL_KEYS = (MATCH_KEY, NO_MATCH_KEY)


class RecallMatchPolicy(TaskPolicy):
    task_type = TASK_NBACK

    def score(self, spec: TrialSpec, response: Optional[str], rt_ms: Optional[int]) -> Scoring:
        if response is None:
            return Scoring(correct=False)
        stimulus: LetterStimulus = spec.stimulus
        if stimulus.is_target:
            return Scoring(correct=response == MATCH_KEY)
        return Scoring(correct=response == NO_MATCH_KEY)

    def describe(self, spec: TrialSpec) -> Dict[str, Any]:
        stimulus: LetterStimulus = spec.stimulus
        return {"letter": stimulus.letter, "is_target": stimulus.is_target, "n_level": spec.n_level}
