from typing import Optional

from config.settings import TASK_STROOP
from data.models import Stimulus, TrialSpec
from experiment.tasks.base import Scoring, TaskPolicy


class InterferencePolicy(TaskPolicy):
    task_type = TASK_STROOP

    def score(self, spec: TrialSpec, response: Optional[str], rt_ms: Optional[int]) -> Scoring:
        stimulus: Stimulus = spec.stimulus
        # сравниваем с клавишей цвета шрифта, слово не важно
        return Scoring(correct=response is not None and response == stimulus.correct_response)
