import random
import time
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import pygame

from config.settings import TASK_GONOGO, TASK_NBACK, TASK_STROOP, ExperimentConfig, WindowConfig
from data.export import trial_record, write_trials_csv
from data.logger import JsonlLogger
from data.models import AdjustmentResult, SessionSummary, TrialResult
from data.telemetry_client import TelemetryClient
from experiment.renderer import Renderer
from experiment.scheduler import Scheduler
from experiment.session import SESSION_FINISHED, SESSION_IDLE, SESSION_PROGRESS, SessionOrchestrator
from experiment.session_metrics import compute_congruency_effect, count_errors, task_title
from experiment.state_machine import PHASE_FEEDBACK, PHASE_FIXATION, PHASE_STIMULUS
from experiment.tasks.input_utils import read_response_key
from experiment.tasks.recall_match import MATCH_KEY, NO_MATCH_KEY


class ExperimentApp:
    def __init__(
        self,
        config: ExperimentConfig,
        window: Optional[WindowConfig] = None,
        participant_id: str = "anonymous",
        seed: Optional[int] = None,
    ) -> None:
        self.config = config
        self.window = window or WindowConfig()
        pygame.init()
        self.screen = pygame.display.set_mode((self.window.width, self.window.height))
        pygame.display.set_caption(self.window.title)
        self.clock = pygame.time.Clock()
        self.renderer = Renderer(self.screen)

        log_dir = Path(config.log_dir)
        self.log_dir = log_dir
        self.events_logger = JsonlLogger(str(log_dir / "events.jsonl"))
        self.adapt_logger = JsonlLogger(str(log_dir / "adaptations.jsonl"))
        self.session_logger = JsonlLogger(str(log_dir / "sessions.jsonl"))

        t = config.telemetry
        self.telemetry = TelemetryClient(
            endpoint_url=t.endpoint_url,
            api_key=t.api_key,
            client_version=f"acct-{config.version}",
            queue_path=t.queue_path,
            max_batch_size=t.max_batch_size,
            flush_interval_sec=t.flush_interval_sec,
        )
        if self.telemetry.enabled:
            _, message = self.telemetry.check_connection()
            print(f"Telemetry: {message}")

        rng = random.Random(seed) if seed is not None else None

        self.scheduler = Scheduler(pygame.time.get_ticks)
        self.session = SessionOrchestrator(
            config,
            self.scheduler,
            rng=rng,
            participant_id=participant_id,
            session_id=f"s{int(time.time())}",
            on_trial_result=self._handle_result,
            on_adjustment=self._handle_adjustment,
            on_finished=self._finalize_session,
        )
        self.summary: Optional[SessionSummary] = None
        self.running = True

    def run(self) -> Optional[SessionSummary]:
        while self.running:
            self.clock.tick(self.window.fps)
            # сначала истёкшие таймеры, потом клавиши этого кадра
            self.scheduler.poll()

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self.running = False
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.type == pygame.KEYDOWN:
                    self._handle_key(event)

            self.scheduler.poll()
            if not self.session.trial_in_progress():
                self.telemetry.flush()
            self._render()

        if self.summary is None and self.session.phase != SESSION_IDLE:
            # вышли раньше времени: пишем то, что успели
            self._write_summary(self.session.session_summary())
        self.telemetry.flush(force=True)
        pygame.quit()
        return self.summary

    def _handle_key(self, event: pygame.event.Event) -> None:
        phase = self.session.phase
        continue_pressed = event.key in (pygame.K_SPACE, pygame.K_RETURN)
        if phase == SESSION_IDLE:
            if continue_pressed:
                self.session.start()
            return
        if phase == SESSION_PROGRESS:
            if continue_pressed:
                self.session.continue_session()
            return
        if phase == SESSION_FINISHED:
            if continue_pressed:
                self.running = False
            return
        self.session.handle_input(read_response_key(event))

    # --------------------------
    # Колбэки сессии
    # --------------------------

    def _handle_result(self, result: TrialResult) -> None:
        record = trial_record(result, self.session.participant_id)
        record["session_id"] = self.session.session_id
        record["timestamp"] = int(time.time())
        self.events_logger.write(record)
        self.telemetry.track_trial(result, self.session.participant_id, self.session.session_id)

    def _handle_adjustment(self, adjustment: AdjustmentResult) -> None:
        if not adjustment.adjusted:
            return
        event = self.session.controller.adjustment_history[-1]
        rec = asdict(event)
        rec["session_id"] = self.session.session_id
        rec["step"] = len(self.session.controller.adjustment_history) - 1
        self.adapt_logger.write(rec)

    def _finalize_session(self, summary: SessionSummary) -> None:
        self._write_summary(summary)
        self.telemetry.track_session(summary)
        csv_path = self.log_dir / f"trials_{summary.session_id}.csv"
        n = write_trials_csv(csv_path, self.session.results, summary.participant_id)
        print(f"Saved {n} trials to {csv_path}")

    def _write_summary(self, summary: SessionSummary) -> None:
        self.summary = summary
        rec = asdict(summary)
        rec["congruency_effect_ms"] = compute_congruency_effect(self.session.results)
        rec.update(count_errors(self.session.results))
        self.session_logger.write(rec)

    # --------------------------
    # Рисование
    # --------------------------

    def _render(self) -> None:
        r = self.renderer
        r.clear()
        phase = self.session.phase

        if phase == SESSION_IDLE:
            r.draw_text_screen(self.config.name, self._instructions())
        elif phase == SESSION_PROGRESS and self.session.progress is not None:
            nxt = self.session.current_block + 1
            next_title = task_title(self.session.task_type_for_block(nxt)) if nxt <= self.config.blocks.total else None
            r.draw_progress(self.session.progress, next_title)
        elif phase == SESSION_FINISHED:
            self._render_final()
        else:
            self._render_trial()

        r.present()

    def _render_trial(self) -> None:
        r = self.renderer
        block = self.session.current_block
        title = "Practice" if block == 0 else task_title(self.session.task_type_for_block(block))
        r.draw_hud((block, self.config.blocks.total), self.session.controller.current_level_name(), title)

        trial = self.session.current_trial
        if trial is None:
            return
        if trial.phase == PHASE_FIXATION:
            r.draw_fixation()
        elif trial.phase == PHASE_STIMULUS:
            if trial.stimulus_visible:
                r.draw_stimulus(trial.spec.stimulus)
            r.draw_key_hints(self._key_hints(trial.spec.task_type, trial.spec.valid_responses))
        elif trial.phase == PHASE_FEEDBACK:
            correct = trial.scoring.correct if trial.scoring is not None else None
            r.draw_feedback(trial.feedback_text, correct)

    def _render_final(self) -> None:
        s = self.summary
        if s is None:
            return
        lines = [
            f"Trials: {s.total_trials}",
            f"Accuracy: {s.accuracy_total * 100:.0f}%",
            f"Average reaction time: {s.mean_rt:.0f} ms",
            f"Final level: {s.final_level} ({self.session.controller.current_level_name(s.final_level)})",
            f"Difficulty adjustments: {s.total_adjustments}",
            f"Time: {s.completion_time_min:.1f} min",
            "",
            "Press SPACE to exit",
        ]
        self.renderer.draw_text_screen("Session complete", lines)

    def _key_hints(self, task_type: str, keys) -> List[str]:
        if task_type == TASK_STROOP:
            by_key = {v: k for k, v in self.config.stimuli.key_mappings}
            return ["  ".join(f"{k.upper()} = {by_key.get(k, k)}" for k in keys)]
        if task_type == TASK_NBACK:
            return [f"{MATCH_KEY.upper()} = match   {NO_MATCH_KEY.upper()} = no match"]
        if task_type == TASK_GONOGO:
            return [f"SPACE on {self.config.blocks.gonogo_go_letter}, do nothing otherwise"]
        return []

    def _instructions(self) -> List[str]:
        blocks = self.config.blocks
        return [
            "Name the INK colour of the word, not the word itself.",
            self._key_hints(TASK_STROOP, [k for _, k in self.config.stimuli.key_mappings[:4]])[0],
            f"Memory blocks: {MATCH_KEY.upper()} if the letter matches {blocks.nback_level} back, "
            f"{NO_MATCH_KEY.upper()} if not.",
            f"Impulse blocks: SPACE for {blocks.gonogo_go_letter}, hold back for other letters.",
            f"{blocks.practice_trials} practice trials, then {blocks.total} blocks of {blocks.trials_per_block}.",
            "",
            "Press SPACE to start. ESC to quit.",
        ]
