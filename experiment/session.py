from __future__ import annotations

import random
import time
from typing import Callable, List, Optional

from adaptation.controller import AdaptiveDifficultyController
from config.settings import (
    TASK_GONOGO,
    TASK_NBACK,
    TASK_STROOP,
    ExperimentConfig,
    TaskTiming,
    validate,
)
from data.models import (
    AdjustmentResult,
    BlockPlan,
    BlockProgress,
    SessionSummary,
    TrialResult,
    TrialSpec,
)
from experiment.scheduler import Scheduler, TimerHandle
from experiment.session_metrics import compute_accuracy, compute_mean_rt, count_by_task, motivational_message
from experiment.state_machine import TrialState, TrialStateMachine
from experiment.stimulus_generator import (
    build_key_mapping,
    generate_block,
    generate_inhibition_block,
    generate_practice_block,
    generate_recall_sequence,
    valid_keys,
)
from experiment.tasks.inhibition import GO_KEY
from experiment.tasks.recall_match import RECALL_KEYS


SESSION_IDLE = "IDLE"
SESSION_PRACTICE = "PRACTICE"
SESSION_BLOCK = "BLOCK"
SESSION_PROGRESS = "PROGRESS"   # экран прогресса между блоками, ждём continue_session()
SESSION_FINISHED = "FINISHED"


class SessionOrchestrator:
    """
    SessionOrchestrator = "вся сессия".

    Она объединяет:
    - генерацию стимулов (stimulus_generator)
    - проигрывание trial-ов по одному (state_machine)
    - адаптацию сложности после каждого stroop trial-а (controller)
    - выдачу результатов наружу (on_trial_result)

    Порядок: тренировка -> блоки 1..N, тип задачи по кругу.
    """

    def __init__(
        self,
        config: ExperimentConfig,
        scheduler: Scheduler,
        controller: Optional[AdaptiveDifficultyController] = None,
        rng: Optional[random.Random] = None,
        participant_id: str = "anonymous",
        session_id: Optional[str] = None,
        on_trial_result: Optional[Callable[[TrialResult], None]] = None,
        on_adjustment: Optional[Callable[[AdjustmentResult], None]] = None,
        on_finished: Optional[Callable[[SessionSummary], None]] = None,
    ) -> None:
        # некорректный конфиг: сессию не запускаем вообще
        self.config = validate(config)
        self.scheduler = scheduler
        self.controller = controller or AdaptiveDifficultyController(config)
        self.rng = rng or random.Random()
        self.participant_id = participant_id
        self.session_id = session_id or f"s{int(time.time())}"
        self.on_trial_result = on_trial_result
        self.on_adjustment = on_adjustment
        self.on_finished = on_finished

        self.machine = TrialStateMachine(scheduler)
        self.mapping = build_key_mapping(config.stimuli)

        self.phase: str = SESSION_IDLE
        self.current_block: int = 0
        self.queue: List[TrialSpec] = []
        self.results: List[TrialResult] = []
        self.practice_results: List[TrialResult] = []
        self.progress: Optional[BlockProgress] = None
        self.started_at_ms: Optional[int] = None
        self.finished_at_ms: Optional[int] = None
        self._next_trial_timer: Optional[TimerHandle] = None

    # --------------------------
    # План сессии
    # --------------------------

    def task_type_for_block(self, block_number: int) -> str:
        rotation = self.config.blocks.task_rotation
        return rotation[(block_number - 1) % len(rotation)]

    def build_timeline(self) -> List[BlockPlan]:
        return [
            BlockPlan(block_number=b, task_type=self.task_type_for_block(b))
            for b in range(1, self.config.blocks.total + 1)
        ]

    def build_practice_trials(self) -> List[TrialSpec]:
        timing = self.config.timing.practice
        colors = self.config.stimuli.colors
        stimuli = generate_practice_block(self.config.blocks.practice_trials, self.config.stimuli, self.rng)
        return [
            self._spec(
                i, TASK_STROOP, stim, 0, self.config.adaptation.min_level, timing,
                valid_responses=tuple(valid_keys(colors, self.mapping)), is_practice=True,
            )
            for i, stim in enumerate(stimuli)
        ]

    def build_block(self, block_number: int) -> List[TrialSpec]:
        """
        Trial-ы одного блока. Параметры сложности берутся из контроллера
        один раз, в момент генерации блока, и действуют на весь блок.
        """
        task_type = self.task_type_for_block(block_number)
        blocks = self.config.blocks
        n = blocks.trials_per_block
        first_index = len(self.results)
        state = self.controller.state

        if task_type == TASK_STROOP:
            extra = self.config.timing.stroop_response_extra_ms
            timing = TaskTiming(
                fixation_ms=self.config.timing.fixation_ms,
                stimulus_ms=state.stimulus_duration_ms,
                response_window_ms=state.stimulus_duration_ms + extra,
                feedback_ms=None,
            )
            stimuli = generate_block(
                n, state.color_set, self._words_for(state.color_set), self.rng, self.mapping,
                self.config.stimuli.congruent_probability,
            )
            keys = tuple(valid_keys(state.color_set, self.mapping))
            return [
                self._spec(first_index + i, task_type, stim, block_number, state.level, timing, valid_responses=keys)
                for i, stim in enumerate(stimuli)
            ]

        if task_type == TASK_NBACK:
            stimuli = generate_recall_sequence(
                n, blocks.nback_letters, blocks.nback_level, blocks.nback_repeat_probability, self.rng
            )
            return [
                self._spec(
                    first_index + i, task_type, stim, block_number, state.level, self.config.timing.nback,
                    valid_responses=RECALL_KEYS, n_level=blocks.nback_level,
                )
                for i, stim in enumerate(stimuli)
            ]

        if task_type == TASK_GONOGO:
            stimuli = generate_inhibition_block(
                n, blocks.gonogo_go_letter, blocks.gonogo_nogo_letters, blocks.gonogo_go_probability, self.rng
            )
            return [
                self._spec(
                    first_index + i, task_type, stim, block_number, state.level, self.config.timing.gonogo,
                    valid_responses=(GO_KEY,),
                )
                for i, stim in enumerate(stimuli)
            ]

        raise ValueError(f"Unsupported task_type: {task_type}")

    def _words_for(self, color_set) -> tuple:
        # слова PURPLE/ORANGE появляются вместе с расширенной палитрой
        stimuli = self.config.stimuli
        if tuple(color_set) == tuple(stimuli.advanced_colors):
            return stimuli.advanced_words
        return stimuli.words

    @staticmethod
    def _spec(
        trial_index: int,
        task_type: str,
        stimulus,
        block_index: int,
        level: int,
        timing: TaskTiming,
        valid_responses: tuple,
        is_practice: bool = False,
        n_level: Optional[int] = None,
    ) -> TrialSpec:
        return TrialSpec(
            trial_index=trial_index,
            task_type=task_type,
            stimulus=stimulus,
            block_index=block_index,
            difficulty_level=level,
            stimulus_duration_ms=timing.stimulus_ms,
            response_window_ms=timing.response_window_ms,
            fixation_ms=timing.fixation_ms,
            feedback_ms=timing.feedback_ms,
            valid_responses=valid_responses,
            is_practice=is_practice,
            n_level=n_level,
        )

    # --------------------------
    # Ход сессии
    # --------------------------

    def start(self) -> None:
        if self.phase != SESSION_IDLE:
            raise RuntimeError(f"session already started (phase={self.phase})")
        self.started_at_ms = self.scheduler.now_ms()
        practice = self.build_practice_trials()
        if practice:
            self.phase = SESSION_PRACTICE
            self.queue = practice
            self._start_next_trial()
        else:
            self._start_block(1)

    def handle_input(self, key: Optional[str]) -> bool:
        if self.phase not in (SESSION_PRACTICE, SESSION_BLOCK):
            return False
        return self.machine.handle_input(key)

    def continue_session(self) -> None:
        """Участник закрыл экран прогресса, запускаем следующий блок."""
        if self.phase != SESSION_PROGRESS:
            return
        self.progress = None
        self._start_block(self.current_block + 1)

    @property
    def current_trial(self) -> Optional[TrialState]:
        return self.machine.trial

    def is_finished(self) -> bool:
        return self.phase == SESSION_FINISHED

    def trial_in_progress(self) -> bool:
        """Идёт trial (от фиксации до конца фидбека): в это время нельзя блокироваться на I/O."""
        return self.machine.is_active()

    def _start_block(self, block_number: int) -> None:
        self.phase = SESSION_BLOCK
        self.current_block = block_number
        self.queue = self.build_block(block_number)
        self._start_next_trial()

    def _start_next_trial(self) -> None:
        self._next_trial_timer = None
        if not self.queue:
            self._on_queue_empty()
            return
        spec = self.queue.pop(0)
        self.machine.start_trial(spec, on_done=self._on_trial_done)

    def _on_trial_done(self, result: TrialResult) -> None:
        if result.is_practice:
            self.practice_results.append(result)
        else:
            self.results.append(result)
            if result.task_type == TASK_STROOP:
                # сначала окно, потом подстройка, до того как настроим следующий trial
                self.controller.record_trial(result)
                if self.controller.ready_to_adjust():
                    adjustment = self.controller.adjust()
                    if self.on_adjustment is not None:
                        self.on_adjustment(adjustment)
            if self.on_trial_result is not None:
                self.on_trial_result(result)

        iti = self.config.timing.inter_trial_interval_ms
        if self.queue and iti > 0:
            self._next_trial_timer = self.scheduler.call_later(iti, self._start_next_trial)
        else:
            self._start_next_trial()

    def _on_queue_empty(self) -> None:
        if self.phase == SESSION_PRACTICE:
            self._start_block(1)
            return

        total = self.config.blocks.total
        if self.current_block >= total:
            self._finish()
            return
        if self.config.blocks.show_progress_after_block:
            self.progress = self.block_progress(self.current_block)
            self.phase = SESSION_PROGRESS
            return
        self._start_block(self.current_block + 1)

    def _finish(self) -> None:
        self.phase = SESSION_FINISHED
        self.finished_at_ms = self.scheduler.now_ms()
        if self.on_finished is not None:
            self.on_finished(self.session_summary())

    # --------------------------
    # Чтение состояния
    # --------------------------

    def block_results(self, block_number: int) -> List[TrialResult]:
        return [r for r in self.results if r.block_index == block_number]

    def block_progress(self, block_number: int) -> BlockProgress:
        block = self.block_results(block_number)
        accuracy = compute_accuracy(block)
        return BlockProgress(
            block_number=block_number,
            total_blocks=self.config.blocks.total,
            task_type=self.task_type_for_block(block_number),
            block_accuracy=accuracy,
            mean_rt_ms=compute_mean_rt(block),
            level=self.controller.state.level,
            level_name=self.controller.current_level_name(),
            adjustment_message=self.controller.last_adjustment_reason(),
            motivational_message=motivational_message(accuracy),
        )

    def session_summary(self) -> SessionSummary:
        correct = sum(1 for r in self.results if r.correct)
        total = len(self.results)
        started = self.started_at_ms if self.started_at_ms is not None else self.scheduler.now_ms()
        ended = self.finished_at_ms if self.finished_at_ms is not None else self.scheduler.now_ms()
        return SessionSummary(
            session_id=self.session_id,
            participant_id=self.participant_id,
            total_trials=total,
            correct_trials=correct,
            accuracy_total=correct / total if total > 0 else 0.0,
            mean_rt=compute_mean_rt(self.results),
            final_level=self.controller.state.level,
            total_adjustments=len(self.controller.adjustment_history),
            completion_time_min=(ended - started) / 60000.0,
            completed=self.phase == SESSION_FINISHED,
            trials_by_task=count_by_task(self.results),
        )
