from data.models import SessionSummary
from data.telemetry_client import EVENT_SESSION_END, EVENT_TRIAL_RESULT, TelemetryClient


class FakeClock:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


def make_client(tmp_path, clock, endpoint="http://127.0.0.1:9/v1/events", api_key="k"):
    return TelemetryClient(
        endpoint_url=endpoint,
        api_key=api_key,
        queue_path=str(tmp_path / "queue.jsonl"),
        max_batch_size=5,
        flush_interval_sec=15.0,
        clock=clock,
    )


def test_disabled_client_ignores_events(tmp_path, result_factory):
    client = make_client(tmp_path, FakeClock(), endpoint="")
    client.track_trial(result_factory(True), "p1", "s1")
    assert client.queue_size() == 0
    ok, _ = client.check_connection()
    assert ok is False
    assert client.last_error == "disabled"


def test_batches_when_full(tmp_path, monkeypatch, result_factory):
    client = make_client(tmp_path, FakeClock())
    sent = []
    monkeypatch.setattr(client, "_post", lambda body: sent.append(body) or True)

    for i in range(4):
        client.track_trial(result_factory(True, trial_index=i), "p1", "s1")
    assert sent == []
    assert client.queue_size() == 4

    client.flush()
    assert sent == []

    client.track_trial(result_factory(False, trial_index=4), "p1", "s1")
    # track только ставит в очередь, даже полную пачку
    assert sent == []
    assert client.queue_size() == 5

    client.flush()
    assert len(sent) == 1
    events = sent[0]["events"]
    assert len(events) == 5
    assert all(e["event_type"] == EVENT_TRIAL_RESULT for e in events)
    assert events[4]["payload"]["trial_number"] == 5
    assert client.queue_size() == 0
    assert not (tmp_path / "queue.jsonl").exists()


def test_flushes_after_interval(tmp_path, monkeypatch, result_factory):
    clock = FakeClock()
    client = make_client(tmp_path, clock)
    sent = []
    monkeypatch.setattr(client, "_post", lambda body: sent.append(body) or True)

    client.track_trial(result_factory(True), "p1", "s1")
    assert sent == []
    clock.value += 16
    client.flush()
    assert len(sent) == 1


def test_failed_send_keeps_queue_on_disk(tmp_path, monkeypatch, result_factory):
    client = make_client(tmp_path, FakeClock())
    monkeypatch.setattr(client, "_post", lambda body: False)
    for i in range(6):
        client.track_trial(result_factory(True, trial_index=i), "p1", "s1")
    assert client.queue_size() == 6

    restored = make_client(tmp_path, FakeClock())
    assert restored.queue_size() == 6


def test_session_summary_event(tmp_path, monkeypatch):
    client = make_client(tmp_path, FakeClock())
    sent = []
    monkeypatch.setattr(client, "_post", lambda body: sent.append(body) or True)
    summary = SessionSummary(
        session_id="s1",
        participant_id="p1",
        total_trials=50,
        correct_trials=40,
        accuracy_total=0.8,
        mean_rt=700.0,
        final_level=3,
        total_adjustments=4,
        completion_time_min=6.5,
        completed=True,
        trials_by_task={"stroop": 20},
    )
    client.track_session(summary)
    client.flush(force=True)
    event = sent[0]["events"][0]
    assert event["event_type"] == EVENT_SESSION_END
    assert event["user_id"] == "p1"
    assert event["payload"]["final_level"] == 3


def test_endpoint_validation():
    assert TelemetryClient.is_valid_endpoint("https://example.org/v1/events")
    assert not TelemetryClient.is_valid_endpoint("ftp://example.org")
    assert not TelemetryClient.is_valid_endpoint("")
