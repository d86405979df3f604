from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from data.models import TrialResult, TrialSpec
from experiment.scheduler import Scheduler, TimerHandle
from experiment.tasks import POLICIES, Scoring, TaskPolicy, get_policy


# Фазы trial-а храним строками (так проще логировать и рисовать)
PHASE_IDLE = "IDLE"                            # trial ещё не запущен
PHASE_FIXATION = "FIXATION"                    # фиксационный крест
PHASE_STIMULUS = "STIMULUS"                    # стимул на экране, ждём ответ
PHASE_RESPONSE_COLLECTED = "RESPONSE_COLLECTED"
PHASE_TIMEOUT = "TIMEOUT"                      # окно ответа закрылось без ответа
PHASE_FEEDBACK = "FEEDBACK"                    # "Correct!/Incorrect"
PHASE_DONE = "DONE"


@dataclass
class TrialState:
    """
    Состояние одного trial-а. Новый объект на каждый trial,
    поэтому ничего не "протекает" из прошлого trial-а в следующий.
    """
    spec: TrialSpec
    policy: TaskPolicy
    on_done: Optional[Callable[[TrialResult], None]]
    phase: str = PHASE_IDLE
    stimulus_onset_ms: Optional[int] = None
    stimulus_visible: bool = False
    response: Optional[str] = None
    rt_ms: Optional[int] = None
    is_timeout: bool = False
    scoring: Optional[Scoring] = None
    feedback_text: Optional[str] = None
    timers: List[TimerHandle] = field(default_factory=list)


class TrialStateMachine:
    """
    Управляет одним trial-ом за раз.

    FIXATION -> STIMULUS -> (RESPONSE_COLLECTED | TIMEOUT) -> [FEEDBACK] -> DONE

    - время идёт через scheduler (в тестах его двигаем руками)
    - ввод приходит через handle_input(key)
    - в DONE ровно один раз отдаём TrialResult в on_done и гасим все таймеры
    """

    def __init__(self, scheduler: Scheduler, policies: Optional[Dict[str, TaskPolicy]] = None) -> None:
        self.scheduler = scheduler
        self.policies = policies if policies is not None else POLICIES
        self.trial: Optional[TrialState] = None
        self.last_result: Optional[TrialResult] = None

    @property
    def phase(self) -> str:
        if self.trial is None:
            return PHASE_DONE if self.last_result is not None else PHASE_IDLE
        return self.trial.phase

    def is_active(self) -> bool:
        return self.trial is not None

    def start_trial(self, spec: TrialSpec, on_done: Optional[Callable[[TrialResult], None]] = None) -> None:
        if self.trial is not None:
            raise RuntimeError(f"trial {self.trial.spec.trial_index} is still running")
        policy = self.policies.get(spec.task_type) or get_policy(spec.task_type)
        self.trial = TrialState(spec=spec, policy=policy, on_done=on_done)
        if spec.fixation_ms is not None:
            self._transition(PHASE_FIXATION)
        else:
            self._transition(PHASE_STIMULUS)

    def handle_input(self, key: Optional[str]) -> bool:
        """
        Возвращает True, если нажатие засчитано как ответ.
        Всё остальное (не та фаза, не та клавиша, второй ответ) молча игнорируем.
        """
        trial = self.trial
        if trial is None or key is None:
            return False
        if trial.phase != PHASE_STIMULUS or trial.response is not None:
            return False
        if not trial.policy.accepts(trial.spec, key):
            return False

        now_ms = self.scheduler.now_ms()
        onset = trial.stimulus_onset_ms if trial.stimulus_onset_ms is not None else now_ms
        # окно уже истекло, просто таймер ещё не успели обработать
        if now_ms - onset >= trial.spec.response_window_ms:
            return False
        trial.response = key
        trial.rt_ms = now_ms - onset

        if trial.policy.ends_on_response:
            self._transition(PHASE_RESPONSE_COLLECTED)
        return True

    # --------------------------
    # Таймеры
    # --------------------------

    def _schedule(self, delay_ms: int, callback: Callable[[], None]) -> None:
        trial = self.trial

        def fire() -> None:
            # таймер от уже закончившегося trial-а ничего не трогает
            if self.trial is trial:
                callback()

        trial.timers.append(self.scheduler.call_later(delay_ms, fire))

    def _on_fixation_elapsed(self) -> None:
        if self.trial.phase == PHASE_FIXATION:
            self._transition(PHASE_STIMULUS)

    def _on_stimulus_hidden(self) -> None:
        self.trial.stimulus_visible = False

    def _on_window_closed(self) -> None:
        if self.trial.phase != PHASE_STIMULUS:
            return
        if self.trial.response is not None:
            self._transition(PHASE_RESPONSE_COLLECTED)
        else:
            self._transition(PHASE_TIMEOUT)

    def _on_feedback_elapsed(self) -> None:
        if self.trial.phase == PHASE_FEEDBACK:
            self._transition(PHASE_DONE)

    # --------------------------
    # Единственная функция переходов
    # --------------------------

    def _transition(self, phase: str) -> None:
        trial = self.trial
        spec = trial.spec
        trial.phase = phase

        if phase == PHASE_FIXATION:
            self._schedule(spec.fixation_ms, self._on_fixation_elapsed)
            return

        if phase == PHASE_STIMULUS:
            trial.stimulus_onset_ms = self.scheduler.now_ms()
            trial.stimulus_visible = True
            self._schedule(spec.response_window_ms, self._on_window_closed)
            if spec.stimulus_duration_ms < spec.response_window_ms:
                self._schedule(spec.stimulus_duration_ms, self._on_stimulus_hidden)
            return

        if phase in (PHASE_RESPONSE_COLLECTED, PHASE_TIMEOUT):
            if phase == PHASE_TIMEOUT:
                trial.response = None
                trial.rt_ms = None
                trial.is_timeout = True
            trial.stimulus_visible = False
            trial.scoring = trial.policy.score(spec, trial.response, trial.rt_ms)
            if spec.feedback_ms is not None:
                self._transition(PHASE_FEEDBACK)
            else:
                self._transition(PHASE_DONE)
            return

        if phase == PHASE_FEEDBACK:
            trial.feedback_text = trial.policy.feedback_text(spec, trial.scoring, trial.is_timeout)
            self._schedule(spec.feedback_ms, self._on_feedback_elapsed)
            return

        if phase == PHASE_DONE:
            self._finish()
            return

        # Если фаза вдруг неизвестная, это ошибка в коде
        raise ValueError(f"Unknown phase: {phase}")

    def _finish(self) -> None:
        trial = self.trial
        for timer in trial.timers:
            timer.cancel()
        trial.timers.clear()

        spec = trial.spec
        scoring = trial.scoring
        result = TrialResult(
            trial_index=spec.trial_index,
            task_type=spec.task_type,
            block_index=spec.block_index,
            stimulus=trial.policy.describe(spec),
            response=trial.response,
            rt_ms=trial.rt_ms,
            correct=scoring.correct,
            is_timeout=trial.is_timeout,
            difficulty_level=spec.difficulty_level,
            stimulus_duration_ms=spec.stimulus_duration_ms,
            commission_error=scoring.commission_error,
            omission_error=scoring.omission_error,
            is_practice=spec.is_practice,
        )

        # Сначала отпускаем trial, потом зовём on_done:
        # внутри колбэка сессия может сразу запустить следующий trial.
        self.trial = None
        self.last_result = result
        if trial.on_done is not None:
            trial.on_done(result)
