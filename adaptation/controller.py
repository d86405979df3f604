from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict
from typing import Any, Callable, Deque, Dict, List, Optional

from adaptation.levels import clamp_level, color_set_for_level, level_for_duration, level_name
from config.settings import ExperimentConfig, validate
from data.models import (
    AdjustmentEvent,
    AdjustmentResult,
    DifficultyState,
    PerformanceSample,
    PerformanceSummary,
    TrialResult,
)


REASON_INSUFFICIENT = "Insufficient data - need more trials"
REASON_IN_RANGE = "Performance within target range - no adjustment"
REASON_HIGH_AT_LIMIT = "High accuracy - already at the hardest setting"
REASON_LOW_AT_LIMIT = "Low accuracy - already at the easiest setting"


class AdaptiveDifficultyController:
    """
    Подстраивает сложность stroop по скользящему окну последних N trial-ов.

    - окно FIFO, длина не больше window_size
    - точность >= high: стимул короче на шаг, уровень может вырасти
      (кандидат считается из новой длительности)
    - точность <= low: стимул длиннее на шаг, уровень -1
    - иначе ничего не меняем
    Длительность и уровень меняются независимо друг от друга в одном вызове.
    """

    def __init__(self, config: ExperimentConfig, clock: Callable[[], float] = time.time) -> None:
        self.config = validate(config)
        self.adapt = config.adaptation
        self.clock = clock
        self.window: Deque[PerformanceSample] = deque(maxlen=self.adapt.window_size)
        self.adjustment_history: List[AdjustmentEvent] = []
        self.reset()

    def reset(self) -> None:
        level = self.adapt.initial_level
        self._state = DifficultyState(
            level=level,
            stimulus_duration_ms=self.adapt.level_table()[level].stimulus_ms,
            color_set=color_set_for_level(self.adapt, self.config.stimuli, level),
        )
        self.window.clear()
        self.adjustment_history = []
        self._total_trials = 0
        self._correct_trials = 0
        self._rt_sum = 0
        self._rt_count = 0

    @property
    def state(self) -> DifficultyState:
        return self._state

    # --------------------------
    # Окно
    # --------------------------

    def record_trial(self, result: TrialResult) -> None:
        self.window.append(PerformanceSample(correct=result.correct, rt_ms=result.rt_ms))
        self._total_trials += 1
        if result.correct:
            self._correct_trials += 1
        if result.rt_ms is not None:
            self._rt_sum += result.rt_ms
            self._rt_count += 1

    def rolling_accuracy(self) -> float:
        if not self.window:
            return 0.0
        return sum(1 for s in self.window if s.correct) / len(self.window)

    def rolling_mean_rt(self) -> float:
        rts = [s.rt_ms for s in self.window if s.rt_ms is not None]
        return sum(rts) / len(rts) if rts else 0.0

    def ready_to_adjust(self) -> bool:
        return len(self.window) >= self.adapt.window_size

    # --------------------------
    # Подстройка
    # --------------------------

    def adjust(self) -> AdjustmentResult:
        if not self.ready_to_adjust():
            return AdjustmentResult(adjusted=False, reason=REASON_INSUFFICIENT)

        accuracy = self.rolling_accuracy()
        timing = self.config.timing
        prev = self._state
        new_duration = prev.stimulus_duration_ms
        new_level = prev.level

        if accuracy >= self.adapt.high_accuracy_threshold:
            new_duration = max(prev.stimulus_duration_ms - self.adapt.stimulus_time_decrease_ms, timing.stimulus_min_ms)
            candidate = level_for_duration(self.adapt, new_duration)
            if candidate > prev.level:
                new_level = clamp_level(self.adapt, candidate)
            reason = self._reason(
                "High accuracy",
                new_duration != prev.stimulus_duration_ms,
                "decreased stimulus time",
                new_level != prev.level,
                "increased difficulty level",
                REASON_HIGH_AT_LIMIT,
            )
        elif accuracy <= self.adapt.low_accuracy_threshold:
            new_duration = min(prev.stimulus_duration_ms + self.adapt.stimulus_time_increase_ms, timing.stimulus_max_ms)
            new_level = max(self.adapt.min_level, prev.level - 1)
            reason = self._reason(
                "Low accuracy",
                new_duration != prev.stimulus_duration_ms,
                "increased stimulus time",
                new_level != prev.level,
                "decreased difficulty level",
                REASON_LOW_AT_LIMIT,
            )
        else:
            reason = REASON_IN_RANGE

        changed = new_duration != prev.stimulus_duration_ms or new_level != prev.level
        if changed:
            color_set = prev.color_set
            if new_level != prev.level:
                color_set = color_set_for_level(self.adapt, self.config.stimuli, new_level)
            self._state = DifficultyState(level=new_level, stimulus_duration_ms=new_duration, color_set=color_set)
            self.adjustment_history.append(
                AdjustmentEvent(
                    previous_level=prev.level,
                    new_level=new_level,
                    previous_duration_ms=prev.stimulus_duration_ms,
                    new_duration_ms=new_duration,
                    accuracy=accuracy,
                    reason=reason,
                    timestamp=self.clock(),
                )
            )

        return AdjustmentResult(
            adjusted=changed,
            reason=reason,
            previous_level=prev.level,
            new_level=new_level,
            previous_duration_ms=prev.stimulus_duration_ms,
            new_duration_ms=new_duration,
            accuracy=accuracy,
        )

    @staticmethod
    def _reason(
        prefix: str,
        duration_changed: bool,
        duration_text: str,
        level_changed: bool,
        level_text: str,
        at_limit: str,
    ) -> str:
        parts = []
        if duration_changed:
            parts.append(duration_text)
        if level_changed:
            parts.append(level_text)
        if not parts:
            return at_limit
        return f"{prefix} - {' and '.join(parts)}"

    # --------------------------
    # Чтение (без побочных эффектов)
    # --------------------------

    def last_adjustment_reason(self) -> str:
        if not self.adjustment_history:
            return ""
        return self.adjustment_history[-1].reason

    def current_difficulty(self) -> Dict[str, Any]:
        return {
            "level": self._state.level,
            "level_name": level_name(self.adapt, self._state.level),
            "stimulus_duration_ms": self._state.stimulus_duration_ms,
            "color_set": list(self._state.color_set),
            "rolling_accuracy": self.rolling_accuracy(),
            "average_rt": self.rolling_mean_rt(),
            "trials_in_window": len(self.window),
        }

    def summary(self) -> PerformanceSummary:
        total = self._total_trials
        return PerformanceSummary(
            total_trials=total,
            correct_trials=self._correct_trials,
            accuracy=self._correct_trials / total if total > 0 else 0.0,
            mean_rt_ms=self._rt_sum / self._rt_count if self._rt_count > 0 else 0.0,
            current_level=self._state.level,
            adjustments=len(self.adjustment_history),
        )

    def export_state(self) -> Dict[str, Any]:
        return {
            "window": [asdict(s) for s in self.window],
            "adjustment_history": [asdict(e) for e in self.adjustment_history],
            "current_difficulty": self.current_difficulty(),
            "summary": asdict(self.summary()),
        }

    def current_level_name(self, level: Optional[int] = None) -> str:
        return level_name(self.adapt, self._state.level if level is None else level)
