from dataclasses import replace

import pytest

from adaptation.controller import (
    REASON_HIGH_AT_LIMIT,
    REASON_IN_RANGE,
    REASON_INSUFFICIENT,
    REASON_LOW_AT_LIMIT,
    AdaptiveDifficultyController,
)
from adaptation.levels import level_for_duration
from config.settings import AdaptationConfig, ConfigError, ExperimentConfig, StimulusConfig

CONFIG = ExperimentConfig()


@pytest.fixture
def controller():
    return AdaptiveDifficultyController(CONFIG, clock=lambda: 123.0)


def feed(controller, result_factory, pattern):
    for ok in pattern:
        controller.record_trial(result_factory(ok))


def test_initial_state(controller):
    state = controller.state
    assert state.level == 2
    assert state.stimulus_duration_ms == 2000
    assert state.color_set == StimulusConfig().colors
    assert controller.current_level_name() == "Intermediate"


@pytest.mark.parametrize("n", [0, 1, 2, 3, 4])
def test_not_ready_before_window_fills(controller, result_factory, n):
    feed(controller, result_factory, [True] * n)
    assert controller.ready_to_adjust() is False
    result = controller.adjust()
    assert result.adjusted is False
    assert result.reason == REASON_INSUFFICIENT
    assert controller.state.stimulus_duration_ms == 2000
    assert controller.adjustment_history == []


def test_high_accuracy_shortens_stimulus(controller, result_factory):
    feed(controller, result_factory, [True] * 5)
    assert controller.ready_to_adjust() is True
    result = controller.adjust()
    assert result.adjusted is True
    assert result.new_duration_ms == 1800
    assert result.new_level == 2
    assert result.reason == "High accuracy - decreased stimulus time"
    event = controller.adjustment_history[-1]
    assert event.previous_duration_ms == 2000
    assert event.new_duration_ms == 1800
    assert event.accuracy == 1.0
    assert event.timestamp == 123.0


def test_high_accuracy_walks_up_levels_to_the_floor(controller, result_factory):
    feed(controller, result_factory, [True] * 5)
    durations = []
    levels = []
    for _ in range(8):
        controller.adjust()
        durations.append(controller.state.stimulus_duration_ms)
        levels.append(controller.state.level)
    assert durations == [1800, 1600, 1400, 1200, 1000, 800, 800, 800]
    assert levels == [2, 3, 3, 4, 4, 5, 5, 5]
    # с уровня 4 появляются фиолетовый и оранжевый
    assert controller.state.color_set_size == 6
    assert controller.adjust().reason == REASON_HIGH_AT_LIMIT
    assert len(controller.adjustment_history) == 6


def test_level_increase_reason_mentions_both_changes(controller, result_factory):
    feed(controller, result_factory, [True] * 5)
    controller.adjust()
    result = controller.adjust()
    assert result.reason == "High accuracy - decreased stimulus time and increased difficulty level"
    assert result.previous_level == 2 and result.new_level == 3


def test_low_accuracy_lengthens_stimulus_and_drops_level(controller, result_factory):
    feed(controller, result_factory, [False, True, False, True, False])
    result = controller.adjust()
    assert result.adjusted is True
    assert result.new_duration_ms == 2300
    assert result.new_level == 1
    assert result.reason == "Low accuracy - increased stimulus time and decreased difficulty level"


def test_low_accuracy_clamps_at_ceiling_and_level_one(controller, result_factory):
    feed(controller, result_factory, [False] * 5)
    for _ in range(6):
        controller.adjust()
    assert controller.state.stimulus_duration_ms == 3500
    assert controller.state.level == 1
    result = controller.adjust()
    assert result.adjusted is False
    assert result.reason == REASON_LOW_AT_LIMIT


def test_mid_accuracy_changes_nothing(controller, result_factory):
    feed(controller, result_factory, [True, True, False, True, True])
    assert controller.rolling_accuracy() == pytest.approx(0.8)
    assert controller.ready_to_adjust() is True
    result = controller.adjust()
    assert result.adjusted is False
    assert result.reason == REASON_IN_RANGE
    assert controller.adjustment_history == []
    assert controller.state.stimulus_duration_ms == 2000


def test_window_is_fifo(controller, result_factory):
    feed(controller, result_factory, [False, False, True, True, True, True, True])
    assert len(controller.window) == 5
    assert controller.rolling_accuracy() == 1.0


def test_summary_is_session_wide_and_skips_missing_rt(controller, result_factory):
    controller.record_trial(result_factory(True, rt_ms=400))
    controller.record_trial(result_factory(False, rt_ms=None))
    controller.record_trial(result_factory(True, rt_ms=800))
    summary = controller.summary()
    assert summary.total_trials == 3
    assert summary.correct_trials == 2
    assert summary.accuracy == pytest.approx(2 / 3)
    assert summary.mean_rt_ms == 600
    assert summary.current_level == 2
    assert summary.adjustments == 0
    assert controller.rolling_mean_rt() == 600


def test_reads_have_no_side_effects(controller, result_factory):
    feed(controller, result_factory, [True] * 5)
    before = controller.export_state()
    controller.current_difficulty()
    controller.summary()
    controller.last_adjustment_reason()
    assert controller.export_state() == before
    assert before["current_difficulty"]["trials_in_window"] == 5


def test_reset_restores_initial_state(controller, result_factory):
    feed(controller, result_factory, [True] * 5)
    controller.adjust()
    controller.reset()
    assert controller.state.stimulus_duration_ms == 2000
    assert controller.adjustment_history == []
    assert controller.summary().total_trials == 0


def test_level_for_duration_breakpoints():
    adapt = AdaptationConfig()
    assert level_for_duration(adapt, 2500) == 1
    assert level_for_duration(adapt, 2200) == 1
    assert level_for_duration(adapt, 1800) == 2
    assert level_for_duration(adapt, 1300) == 3
    assert level_for_duration(adapt, 1000) == 4
    assert level_for_duration(adapt, 999) == 5


def test_invalid_config_is_rejected():
    bad = replace(CONFIG, adaptation=replace(CONFIG.adaptation, window_size=0))
    with pytest.raises(ConfigError):
        AdaptiveDifficultyController(bad)
