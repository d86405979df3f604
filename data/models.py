from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class Stimulus:
    """
    Стимул для stroop: слово, нарисованное цветом.
    correct_response: клавиша цвета, которым слово НАРИСОВАНО (не самого слова).
    """
    word: str
    color: str
    congruent: bool
    correct_response: str


@dataclass(frozen=True)
class LetterStimulus:
    """
    Буква для n-back (is_target) или go/no-go (is_go).
    """
    letter: str
    is_target: bool = False
    is_go: bool = False


AnyStimulus = Union[Stimulus, LetterStimulus]


@dataclass(frozen=True)
class TrialSpec:
    """
    Всё, что нужно state machine, чтобы проиграть один trial
    """
    trial_index: int
    task_type: str                       # "stroop" / "nback" / "gonogo"
    stimulus: AnyStimulus
    block_index: int
    difficulty_level: int
    stimulus_duration_ms: int
    response_window_ms: int
    fixation_ms: Optional[int] = None    # None: без фиксационного креста
    feedback_ms: Optional[int] = None    # None: без фидбека
    valid_responses: Tuple[str, ...] = ()
    is_practice: bool = False
    n_level: Optional[int] = None


@dataclass(frozen=True)
class TrialResult:
    """
    Итог одного trial-а. Создаётся один раз и больше не меняется.
    """
    trial_index: int
    task_type: str
    block_index: int
    stimulus: Dict[str, Any]
    response: Optional[str]          # None если не нажал
    rt_ms: Optional[int]             # None если не было ответа
    correct: bool
    is_timeout: bool
    difficulty_level: int
    stimulus_duration_ms: int
    commission_error: bool = False
    omission_error: bool = False
    is_practice: bool = False


@dataclass(frozen=True)
class PerformanceSample:
    correct: bool
    rt_ms: Optional[int]


@dataclass(frozen=True)
class DifficultyState:
    level: int
    stimulus_duration_ms: int
    color_set: Tuple[str, ...]

    @property
    def color_set_size(self) -> int:
        return len(self.color_set)


@dataclass(frozen=True)
class AdjustmentEvent:
    previous_level: int
    new_level: int
    previous_duration_ms: int
    new_duration_ms: int
    accuracy: float
    reason: str
    timestamp: float


@dataclass(frozen=True)
class AdjustmentResult:
    adjusted: bool
    reason: str
    previous_level: Optional[int] = None
    new_level: Optional[int] = None
    previous_duration_ms: Optional[int] = None
    new_duration_ms: Optional[int] = None
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class PerformanceSummary:
    total_trials: int
    correct_trials: int
    accuracy: float
    mean_rt_ms: float
    current_level: int
    adjustments: int


@dataclass(frozen=True)
class BlockProgress:
    block_number: int
    total_blocks: int
    task_type: str
    block_accuracy: float
    mean_rt_ms: float
    level: int
    level_name: str
    adjustment_message: str
    motivational_message: str


@dataclass(frozen=True)
class BlockPlan:
    block_number: int
    task_type: str


@dataclass
class SessionSummary:
    session_id: str
    participant_id: str
    total_trials: int
    correct_trials: int
    accuracy_total: float
    mean_rt: float
    final_level: int
    total_adjustments: int
    completion_time_min: float
    completed: bool
    trials_by_task: Dict[str, int] = field(default_factory=dict)
