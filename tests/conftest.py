from typing import Optional

import pytest

from config.settings import TASK_STROOP
from data.models import TrialResult


def make_result(
    correct: bool,
    rt_ms: Optional[int] = 600,
    task_type: str = TASK_STROOP,
    trial_index: int = 0,
    block_index: int = 1,
) -> TrialResult:
    return TrialResult(
        trial_index=trial_index,
        task_type=task_type,
        block_index=block_index,
        stimulus={"word": "RED", "color": "blue", "congruent": False, "correct_response": "b"},
        response="b" if correct else "r",
        rt_ms=rt_ms,
        correct=correct,
        is_timeout=rt_ms is None,
        difficulty_level=2,
        stimulus_duration_ms=2000,
    )


@pytest.fixture
def result_factory():
    return make_result
