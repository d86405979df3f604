from typing import Tuple

from config.settings import AdaptationConfig, StimulusConfig


def level_for_duration(adapt: AdaptationConfig, duration_ms: int) -> int:
    # Чем короче показ стимула, тем выше уровень.
    for threshold, level in adapt.level_breakpoints:
        if duration_ms >= threshold:
            return level
    return adapt.max_level


def level_name(adapt: AdaptationConfig, level: int) -> str:
    spec = adapt.level_table().get(level)
    return spec.name if spec is not None else f"Level {level}"


def color_set_for_level(adapt: AdaptationConfig, stimuli: StimulusConfig, level: int) -> Tuple[str, ...]:
    spec = adapt.level_table()[level]
    if spec.colors >= len(stimuli.advanced_colors):
        return tuple(stimuli.advanced_colors)
    return tuple(stimuli.colors)


def clamp_level(adapt: AdaptationConfig, level: int) -> int:
    return max(adapt.min_level, min(adapt.max_level, level))
