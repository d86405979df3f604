import csv
import json

from data.export import TRIAL_COLUMNS, stimulus_descriptor, trial_record, write_trials_csv, write_trials_jsonl
from config.settings import TASK_GONOGO, TASK_NBACK
from data.logger import JsonlLogger
from data.models import TrialResult


def letter_result(task_type, stimulus, response=None, correct=True):
    return TrialResult(
        trial_index=2,
        task_type=task_type,
        block_index=2,
        stimulus=stimulus,
        response=response,
        rt_ms=450 if response else None,
        correct=correct,
        is_timeout=response is None,
        difficulty_level=2,
        stimulus_duration_ms=500,
    )


def test_trial_record_flattens_stroop_result(result_factory):
    record = trial_record(result_factory(True, rt_ms=512, trial_index=4), participant_id="p7")
    assert set(record) == set(TRIAL_COLUMNS)
    assert record["trial_number"] == 5
    assert record["participant_id"] == "p7"
    assert record["stimulus"] == "RED/blue"
    assert record["congruent"] == 0
    assert record["correct"] == 1
    assert record["reaction_time_ms"] == 512
    assert record["is_target"] is None
    assert record["trial_type"] == ""


def test_stimulus_descriptor_for_letters():
    assert stimulus_descriptor({"letter": "X", "trial_type": "go"}) == "X"


def test_csv_writes_missing_values_as_empty(tmp_path, result_factory):
    path = tmp_path / "out" / "trials.csv"
    n = write_trials_csv(path, [result_factory(True), result_factory(False, rt_ms=None, trial_index=1)], "p1")
    assert n == 2
    with path.open(encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        assert tuple(reader.fieldnames) == TRIAL_COLUMNS
        rows = list(reader)
    assert rows[0]["reaction_time_ms"] == "600"
    assert rows[1]["reaction_time_ms"] == ""
    assert rows[1]["is_timeout"] == "1"


def test_jsonl_export_and_logger(tmp_path, result_factory):
    path = tmp_path / "trials.jsonl"
    write_trials_jsonl(path, [result_factory(True)], "p1")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["participant_id"] == "p1"

    logger = JsonlLogger(str(tmp_path / "logs" / "events.jsonl"))
    logger.write({"a": 1})
    logger.write({"a": 2})
    assert logger.read_all() == [{"a": 1}, {"a": 2}]


def test_trial_record_keeps_recall_target_flag():
    record = trial_record(letter_result(TASK_NBACK, {"letter": "C", "is_target": True, "n_level": 2}, "f"))
    assert record["stimulus"] == "C"
    assert record["is_target"] == 1
    assert record["trial_type"] == ""

    miss = trial_record(letter_result(TASK_NBACK, {"letter": "D", "is_target": False, "n_level": 2}, "j"))
    assert miss["is_target"] == 0


def test_trial_record_keeps_inhibition_trial_type(tmp_path):
    results = [
        letter_result(TASK_GONOGO, {"letter": "X", "trial_type": "go"}, "space"),
        letter_result(TASK_GONOGO, {"letter": "O", "trial_type": "nogo"}),
    ]
    path = tmp_path / "gonogo.csv"
    write_trials_csv(path, results, "p2")
    with path.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [row["trial_type"] for row in rows] == ["go", "nogo"]
    assert [row["is_target"] for row in rows] == ["", ""]
