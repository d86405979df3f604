import pytest

from config.settings import TASK_GONOGO, TASK_NBACK, TASK_STROOP
from data.models import LetterStimulus, Stimulus, TrialSpec
from experiment.scheduler import ManualScheduler
from experiment.state_machine import (
    PHASE_DONE,
    PHASE_FEEDBACK,
    PHASE_FIXATION,
    PHASE_IDLE,
    PHASE_STIMULUS,
    TrialStateMachine,
)
from experiment.tasks.inhibition import GO_KEY
from experiment.tasks.recall_match import MATCH_KEY, RECALL_KEYS

STROOP_KEYS = ("r", "b", "g", "y")


def stroop_spec(**overrides):
    params = dict(
        trial_index=0,
        task_type=TASK_STROOP,
        stimulus=Stimulus(word="RED", color="blue", congruent=False, correct_response="b"),
        block_index=1,
        difficulty_level=2,
        stimulus_duration_ms=2000,
        response_window_ms=3000,
        fixation_ms=500,
        feedback_ms=None,
        valid_responses=STROOP_KEYS,
    )
    params.update(overrides)
    return TrialSpec(**params)


def gonogo_spec(is_go: bool):
    return TrialSpec(
        trial_index=3,
        task_type=TASK_GONOGO,
        stimulus=LetterStimulus(letter="X" if is_go else "O", is_go=is_go),
        block_index=3,
        difficulty_level=2,
        stimulus_duration_ms=800,
        response_window_ms=1500,
        fixation_ms=None,
        feedback_ms=500,
        valid_responses=(GO_KEY,),
    )


def nback_spec(is_target: bool):
    return TrialSpec(
        trial_index=5,
        task_type=TASK_NBACK,
        stimulus=LetterStimulus(letter="C", is_target=is_target),
        block_index=2,
        difficulty_level=2,
        stimulus_duration_ms=500,
        response_window_ms=500,
        fixation_ms=500,
        feedback_ms=800,
        valid_responses=RECALL_KEYS,
        n_level=2,
    )


@pytest.fixture
def sched():
    return ManualScheduler()


@pytest.fixture
def machine(sched):
    return TrialStateMachine(sched)


def test_interference_ink_color_response_is_correct(sched, machine):
    results = []
    machine.start_trial(stroop_spec(), on_done=results.append)
    assert machine.phase == PHASE_FIXATION

    sched.advance(500)
    assert machine.phase == PHASE_STIMULUS
    sched.advance(450)
    assert machine.handle_input("b") is True

    assert len(results) == 1
    r = results[0]
    assert r.correct is True
    assert r.response == "b"
    assert r.rt_ms == 450
    assert r.stimulus["congruent"] is False
    assert r.is_timeout is False
    assert machine.phase == PHASE_DONE
    assert sched.pending_count() == 0


def test_interference_word_key_is_incorrect(sched, machine):
    results = []
    machine.start_trial(stroop_spec(), on_done=results.append)
    sched.advance(600)
    machine.handle_input("r")
    assert results[0].correct is False
    assert results[0].rt_ms == 100


def test_input_outside_stimulus_phase_is_ignored(sched, machine):
    results = []
    machine.start_trial(stroop_spec(), on_done=results.append)
    assert machine.handle_input("b") is False
    sched.advance(500)
    assert machine.handle_input("x") is False
    assert machine.handle_input(None) is False
    assert machine.handle_input("b") is True
    assert machine.handle_input("b") is False
    assert len(results) == 1


def test_stroop_timeout_without_response(sched, machine):
    results = []
    machine.start_trial(stroop_spec(), on_done=results.append)
    sched.advance(500)
    sched.advance(2000)
    assert machine.trial.stimulus_visible is False
    assert machine.phase == PHASE_STIMULUS
    sched.advance(1000)
    r = results[0]
    assert r.is_timeout is True
    assert r.response is None
    assert r.rt_ms is None
    assert r.correct is False


def test_nogo_response_is_commission_error(sched, machine):
    results = []
    machine.start_trial(gonogo_spec(is_go=False), on_done=results.append)
    assert machine.phase == PHASE_STIMULUS

    sched.advance(300)
    assert machine.handle_input(GO_KEY) is True
    # окно остаётся открытым до конца
    assert machine.phase == PHASE_STIMULUS
    assert machine.handle_input(GO_KEY) is False

    sched.advance(1200)
    assert machine.phase == PHASE_FEEDBACK
    assert machine.trial.feedback_text == "Incorrect - should not respond!"
    assert results == []

    sched.advance(500)
    r = results[0]
    assert r.correct is False
    assert r.commission_error is True
    assert r.omission_error is False
    assert r.rt_ms == 300
    assert r.stimulus == {"letter": "O", "trial_type": "nogo"}


def test_go_without_response_is_omission(sched, machine):
    results = []
    machine.start_trial(gonogo_spec(is_go=True), on_done=results.append)
    sched.advance(1500 + 500)
    r = results[0]
    assert r.correct is False
    assert r.omission_error is True
    assert r.is_timeout is True


def test_nogo_withheld_is_correct(sched, machine):
    results = []
    machine.start_trial(gonogo_spec(is_go=False), on_done=results.append)
    sched.advance(1500)
    assert machine.trial.feedback_text == "Correct (no response)"
    sched.advance(500)
    assert results[0].correct is True
    assert results[0].commission_error is False


def test_recall_target_timeout(sched, machine):
    results = []
    machine.start_trial(nback_spec(is_target=True), on_done=results.append)
    sched.advance(500)
    sched.advance(500)
    assert machine.phase == PHASE_FEEDBACK
    assert machine.trial.feedback_text == "Too slow!"
    sched.advance(800)
    r = results[0]
    assert r.correct is False
    assert r.response is None
    assert r.stimulus == {"letter": "C", "is_target": True, "n_level": 2}


def test_recall_match_response(sched, machine):
    results = []
    machine.start_trial(nback_spec(is_target=True), on_done=results.append)
    sched.advance(700)
    assert machine.handle_input(MATCH_KEY) is True
    assert machine.phase == PHASE_FEEDBACK
    sched.advance(800)
    assert results[0].correct is True
    assert results[0].rt_ms == 200


def test_late_input_after_done_is_ignored(sched, machine):
    results = []
    machine.start_trial(nback_spec(is_target=False), on_done=results.append)
    sched.advance(500 + 500 + 800)
    assert machine.phase == PHASE_DONE
    assert machine.handle_input("j") is False
    assert len(results) == 1


def test_starting_while_active_fails(machine):
    machine.start_trial(stroop_spec())
    with pytest.raises(RuntimeError):
        machine.start_trial(stroop_spec(trial_index=1))


def test_unknown_task_type_fails(machine):
    assert machine.phase == PHASE_IDLE
    with pytest.raises(ValueError):
        machine.start_trial(stroop_spec(task_type="flanker"))


def test_timers_of_finished_trial_do_not_touch_next_trial(sched, machine):
    results = []
    machine.start_trial(stroop_spec(), on_done=results.append)
    sched.advance(500)
    machine.handle_input("b")
    sched.advance(1000)
    machine.start_trial(stroop_spec(trial_index=1, fixation_ms=None), on_done=results.append)
    # окно первого trial-а закрылось бы на 3500, второго на 4500
    sched.advance(2000)
    assert len(results) == 1
    assert machine.phase == PHASE_STIMULUS
    sched.advance(1000)
    assert len(results) == 2
    assert results[1].trial_index == 1
    assert results[1].is_timeout is True


def test_input_at_window_due_time_is_rejected_before_poll(sched, machine):
    results = []
    machine.start_trial(stroop_spec(), on_done=results.append)
    sched.advance(500)
    # часы дошли до конца окна, а таймер ещё не обработан
    sched.clock.value = 500 + 3000
    assert machine.phase == PHASE_STIMULUS
    assert machine.handle_input("b") is False
    sched.advance(0)
    assert results[0].is_timeout is True
    assert results[0].response is None


def test_input_just_before_window_due_time_counts(sched, machine):
    results = []
    machine.start_trial(stroop_spec(), on_done=results.append)
    sched.advance(500)
    sched.clock.value = 500 + 2999
    assert machine.handle_input("b") is True
    assert results[0].rt_ms == 2999


def test_late_go_press_in_same_frame_is_not_commission(sched, machine):
    results = []
    machine.start_trial(gonogo_spec(is_go=False), on_done=results.append)
    sched.clock.value = 1500
    assert machine.handle_input(GO_KEY) is False
    sched.advance(0)
    sched.advance(500)
    assert results[0].correct is True
    assert results[0].commission_error is False
