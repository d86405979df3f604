from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


TASK_STROOP = "stroop"
TASK_NBACK = "nback"
TASK_GONOGO = "gonogo"
KNOWN_TASKS = (TASK_STROOP, TASK_NBACK, TASK_GONOGO)

CONFIG_PATH_ENV = "ACCT_CONFIG_PATH"


class ConfigError(ValueError):
    """Конфигурация некорректна: сессию запускать нельзя."""


@dataclass(frozen=True)
class WindowConfig:
    width: int = 1280
    height: int = 720
    fps: int = 60
    title: str = "Adaptive Cognitive Control Task"


@dataclass(frozen=True)
class StimulusConfig:
    colors: Tuple[str, ...] = ("red", "blue", "green", "yellow")
    words: Tuple[str, ...] = ("RED", "BLUE", "GREEN", "YELLOW")
    # на сложных уровнях добавляются фиолетовый и оранжевый
    advanced_colors: Tuple[str, ...] = ("red", "blue", "green", "yellow", "purple", "orange")
    advanced_words: Tuple[str, ...] = ("RED", "BLUE", "GREEN", "YELLOW", "PURPLE", "ORANGE")
    key_mappings: Tuple[Tuple[str, str], ...] = (
        ("red", "r"),
        ("blue", "b"),
        ("green", "g"),
        ("yellow", "y"),
        ("purple", "p"),
        ("orange", "o"),
    )
    congruent_probability: float = 0.25


@dataclass(frozen=True)
class TaskTiming:
    """Тайминги одной парадигмы (мс). None = фаза выключена."""
    fixation_ms: Optional[int]
    stimulus_ms: int
    response_window_ms: int
    feedback_ms: Optional[int]


@dataclass(frozen=True)
class TimingConfig:
    fixation_ms: int = 500
    stimulus_min_ms: int = 800
    stimulus_max_ms: int = 3500
    inter_trial_interval_ms: int = 500
    # окно ответа в stroop = длительность стимула + этот запас
    stroop_response_extra_ms: int = 1000
    practice: TaskTiming = TaskTiming(fixation_ms=500, stimulus_ms=2500, response_window_ms=3500, feedback_ms=800)
    nback: TaskTiming = TaskTiming(fixation_ms=500, stimulus_ms=500, response_window_ms=500, feedback_ms=800)
    gonogo: TaskTiming = TaskTiming(fixation_ms=None, stimulus_ms=800, response_window_ms=1500, feedback_ms=500)


@dataclass(frozen=True)
class LevelSpec:
    name: str
    colors: int
    stimulus_ms: int


DEFAULT_LEVELS: Tuple[Tuple[int, LevelSpec], ...] = (
    (1, LevelSpec(name="Beginner", colors=4, stimulus_ms=2500)),
    (2, LevelSpec(name="Intermediate", colors=4, stimulus_ms=2000)),
    (3, LevelSpec(name="Advanced", colors=4, stimulus_ms=1500)),
    (4, LevelSpec(name="Expert", colors=6, stimulus_ms=1200)),
    (5, LevelSpec(name="Master", colors=6, stimulus_ms=900)),
)


@dataclass(frozen=True)
class AdaptationConfig:
    window_size: int = 5
    high_accuracy_threshold: float = 0.90
    low_accuracy_threshold: float = 0.60
    stimulus_time_decrease_ms: int = 200
    stimulus_time_increase_ms: int = 300
    initial_level: int = 2
    min_level: int = 1
    max_level: int = 5
    # (порог длительности, уровень): первая подходящая строка сверху вниз
    level_breakpoints: Tuple[Tuple[int, int], ...] = ((2200, 1), (1800, 2), (1300, 3), (1000, 4))
    levels: Tuple[Tuple[int, LevelSpec], ...] = DEFAULT_LEVELS

    def level_table(self) -> Dict[int, LevelSpec]:
        return dict(self.levels)


@dataclass(frozen=True)
class BlocksConfig:
    total: int = 5
    trials_per_block: int = 10
    practice_trials: int = 5
    show_progress_after_block: bool = True
    task_rotation: Tuple[str, ...] = KNOWN_TASKS
    nback_level: int = 2
    nback_letters: Tuple[str, ...] = ("A", "B", "C", "D", "E", "F", "G", "H")
    nback_repeat_probability: float = 0.3
    gonogo_go_letter: str = "X"
    gonogo_nogo_letters: Tuple[str, ...] = ("O", "M", "N", "P")
    gonogo_go_probability: float = 0.7


@dataclass(frozen=True)
class TelemetryConfig:
    endpoint_url: str = ""
    api_key: str = ""
    queue_path: str = "data/telemetry_queue.jsonl"
    max_batch_size: int = 5
    flush_interval_sec: float = 15.0


@dataclass(frozen=True)
class ExperimentConfig:
    name: str = "Adaptive Cognitive Control Task"
    version: str = "1.0.0"
    stimuli: StimulusConfig = StimulusConfig()
    timing: TimingConfig = TimingConfig()
    adaptation: AdaptationConfig = AdaptationConfig()
    blocks: BlocksConfig = BlocksConfig()
    telemetry: TelemetryConfig = TelemetryConfig()
    log_dir: str = "data/logs"


def _check_probability(value: float, label: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{label} must be within [0, 1], got {value}")


def _check_duration(value: Optional[int], label: str, allow_none: bool = False) -> None:
    if value is None and allow_none:
        return
    if value is None or value < 0:
        raise ConfigError(f"{label} must be a non-negative duration, got {value}")


def validate(config: ExperimentConfig) -> ExperimentConfig:
    adapt = config.adaptation
    _check_probability(adapt.high_accuracy_threshold, "high_accuracy_threshold")
    _check_probability(adapt.low_accuracy_threshold, "low_accuracy_threshold")
    if adapt.low_accuracy_threshold > adapt.high_accuracy_threshold:
        raise ConfigError("low_accuracy_threshold must not exceed high_accuracy_threshold")
    if adapt.window_size <= 0:
        raise ConfigError(f"window_size must be positive, got {adapt.window_size}")
    if adapt.stimulus_time_decrease_ms <= 0 or adapt.stimulus_time_increase_ms <= 0:
        raise ConfigError("duration step sizes must be positive")
    if adapt.min_level < 1 or adapt.min_level > adapt.max_level:
        raise ConfigError(f"invalid level range {adapt.min_level}..{adapt.max_level}")
    table = adapt.level_table()
    missing = [lvl for lvl in range(adapt.min_level, adapt.max_level + 1) if lvl not in table]
    if missing:
        raise ConfigError(f"level table has no entry for levels {missing}")
    if adapt.initial_level not in table:
        raise ConfigError(f"initial_level {adapt.initial_level} is not in the level table")

    timing = config.timing
    if timing.stimulus_min_ms <= 0 or timing.stimulus_min_ms > timing.stimulus_max_ms:
        raise ConfigError(
            f"stimulus floor/ceiling invalid: {timing.stimulus_min_ms}..{timing.stimulus_max_ms}"
        )
    for label in ("fixation_ms", "inter_trial_interval_ms", "stroop_response_extra_ms"):
        _check_duration(getattr(timing, label), label)
    for task_label in ("practice", "nback", "gonogo"):
        task_timing: TaskTiming = getattr(timing, task_label)
        _check_duration(task_timing.fixation_ms, f"{task_label}.fixation_ms", allow_none=True)
        _check_duration(task_timing.stimulus_ms, f"{task_label}.stimulus_ms")
        _check_duration(task_timing.response_window_ms, f"{task_label}.response_window_ms")
        _check_duration(task_timing.feedback_ms, f"{task_label}.feedback_ms", allow_none=True)
        if task_timing.response_window_ms <= 0:
            raise ConfigError(f"{task_label}.response_window_ms must be positive")

    stimuli = config.stimuli
    _check_probability(stimuli.congruent_probability, "congruent_probability")
    mapped = dict(stimuli.key_mappings)
    unmapped = [c for c in (*stimuli.colors, *stimuli.advanced_colors) if c not in mapped]
    if unmapped:
        raise ConfigError(f"colors without a response key: {unmapped}")
    if len(stimuli.colors) < 2:
        raise ConfigError("at least two colors are required for incongruent stimuli")
    # слово рисуется цветом из палитры, значит хотя бы одно слово должно называть цвет
    for words_label, colors_label in (("words", "colors"), ("advanced_words", "advanced_colors")):
        palette = getattr(stimuli, colors_label)
        if not any(w.lower() in palette for w in getattr(stimuli, words_label)):
            raise ConfigError(f"stimuli.{words_label} has no word naming a color in stimuli.{colors_label}")

    blocks = config.blocks
    if blocks.total <= 0 or blocks.trials_per_block <= 0:
        raise ConfigError("blocks.total and blocks.trials_per_block must be positive")
    if blocks.practice_trials < 0:
        raise ConfigError("blocks.practice_trials must not be negative")
    if not blocks.task_rotation:
        raise ConfigError("task_rotation must not be empty")
    unknown = [t for t in blocks.task_rotation if t not in KNOWN_TASKS]
    if unknown:
        raise ConfigError(f"unknown task types in rotation: {unknown}")
    if blocks.nback_level <= 0:
        raise ConfigError("nback_level must be positive")
    _check_probability(blocks.nback_repeat_probability, "nback_repeat_probability")
    _check_probability(blocks.gonogo_go_probability, "gonogo_go_probability")
    return config


def _as_tuple(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_as_tuple(v) for v in value)
    return value


# фазы, которые можно выключить через null
_OPTIONAL_PHASES = ("fixation_ms", "feedback_ms")


def _check_type(value: Any, current: Any, key: str) -> None:
    """Значение из JSON должно быть того же вида, что и значение по умолчанию."""
    if isinstance(current, bool):
        ok = isinstance(value, bool)
    elif isinstance(current, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(current, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif isinstance(current, str):
        ok = isinstance(value, str)
    elif isinstance(current, tuple):
        ok = isinstance(value, (list, tuple))
    else:
        ok = True
    if not ok:
        raise ConfigError(
            f"config key {key!r} expects {type(current).__name__}, got {type(value).__name__}"
        )


def _parse_levels(value: Any) -> Tuple[Tuple[int, LevelSpec], ...]:
    # {"1": {"name": ..., "colors": 4, "stimulus_ms": 2500}, ...}
    if not isinstance(value, dict):
        raise ConfigError(f"config key 'levels' expects an object, got {type(value).__name__}")
    levels = []
    for lvl, spec in value.items():
        try:
            number = int(lvl)
            level = LevelSpec(**spec)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid level {lvl!r}: {exc}") from exc
        _check_type(level.name, "", "name")
        _check_type(level.colors, 0, "colors")
        _check_type(level.stimulus_ms, 0, "stimulus_ms")
        levels.append((number, level))
    return tuple(sorted(levels, key=lambda item: item[0]))


def _merge_section(section: Any, overrides: Dict[str, Any]) -> Any:
    if not isinstance(overrides, dict):
        raise ConfigError(f"config section must be an object, got {type(overrides).__name__}")
    known = set(section.__dataclass_fields__)
    unknown = [k for k in overrides if k not in known]
    if unknown:
        raise ConfigError(f"unknown config keys: {unknown}")
    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        current = getattr(section, key)
        if isinstance(current, TaskTiming):
            changes[key] = _merge_section(current, value)
        elif key == "levels":
            changes[key] = _parse_levels(value)
        elif key in _OPTIONAL_PHASES and isinstance(section, TaskTiming):
            if value is not None:
                _check_type(value, 0, key)
            changes[key] = value
        else:
            _check_type(value, current, key)
            changes[key] = _as_tuple(value)
    return replace(section, **changes)


def load_experiment_config(path: Optional[Path] = None) -> ExperimentConfig:
    """
    Грузит конфиг сессии один раз на старте.

    Файл JSON содержит только переопределения, например
    {"adaptation": {"window_size": 8}, "blocks": {"total": 3}}.
    """
    config = ExperimentConfig()
    if path is None:
        env_path = os.getenv(CONFIG_PATH_ENV, "").strip()
        path = Path(env_path) if env_path else None
    if path is None:
        return validate(config)
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError("config root must be an object")

    changes: Dict[str, Any] = {}
    for key, value in payload.items():
        if key not in ExperimentConfig.__dataclass_fields__:
            raise ConfigError(f"unknown config section: {key}")
        current = getattr(config, key)
        if hasattr(current, "__dataclass_fields__"):
            changes[key] = _merge_section(current, value)
        else:
            _check_type(value, current, key)
            changes[key] = value
    return validate(replace(config, **changes))
