from experiment.tasks.base import Scoring, TaskPolicy
from experiment.tasks.inhibition import InhibitionPolicy
from experiment.tasks.interference import InterferencePolicy
from experiment.tasks.recall_match import RecallMatchPolicy

POLICIES = {
    InterferencePolicy.task_type: InterferencePolicy(),
    RecallMatchPolicy.task_type: RecallMatchPolicy(),
    InhibitionPolicy.task_type: InhibitionPolicy(),
}


def get_policy(task_type: str) -> TaskPolicy:
    try:
        return POLICIES[task_type]
    except KeyError:
        raise ValueError(f"Unsupported task_type: {task_type}") from None


__all__ = [
    "InhibitionPolicy",
    "InterferencePolicy",
    "RecallMatchPolicy",
    "Scoring",
    "TaskPolicy",
    "get_policy",
]
