import json
import time
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib import error, request
from urllib.parse import urlparse

from data.export import trial_record
from data.logger import JsonlLogger
from data.models import SessionSummary, TrialResult

EVENT_TRIAL_RESULT = "trial_result"
EVENT_SESSION_END = "session_end"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class TelemetryClient:
    """
    Буфер результатов на отправку в backend.

    Для сессии это fire-and-forget: сетевые ошибки остаются в last_error
    и наружу не пробрасываются. Очередь лежит в JSONL, поэтому переживает
    перезапуск. track() только кладёт событие в очередь, сеть трогает
    один flush(): пачка уходит, когда набралось max_batch_size событий
    или прошло flush_interval_sec с последней попытки.
    """

    def __init__(
        self,
        endpoint_url: str,
        api_key: str,
        client_version: str = "acct-dev",
        queue_path: str = "data/telemetry_queue.jsonl",
        max_batch_size: int = 5,
        flush_interval_sec: float = 15.0,
        timeout_sec: float = 2.5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.endpoint_url = endpoint_url.strip()
        self.api_key = api_key.strip()
        self.client_version = client_version
        self.max_batch_size = max(1, max_batch_size)
        self.flush_interval_sec = max(0.1, flush_interval_sec)
        self.timeout_sec = max(0.5, timeout_sec)
        self.clock = clock
        self.enabled = bool(self.endpoint_url and self.api_key)
        self._store = JsonlLogger(queue_path)
        self.queue: List[Dict[str, Any]] = self._load_queue()
        self.last_flush_ts: float = self.clock()
        self.last_error: str = ""
        self.last_success_ts: float = 0.0

    # --------------------------
    # Постановка в очередь
    # --------------------------

    def track(
        self,
        event_type: str,
        participant_id: Optional[str],
        session_id: Optional[str],
        payload: Dict[str, Any],
    ) -> None:
        if not self.enabled or not participant_id or not session_id:
            return
        self.queue.append(
            {
                "event_id": uuid.uuid4().hex,
                "event_type": event_type,
                "event_ts": _utc_now_iso(),
                "user_id": participant_id,
                "session_id": session_id,
                "model_version": self.client_version,
                "payload": payload,
            }
        )
        self._save_queue()

    def track_trial(self, result: TrialResult, participant_id: str, session_id: str) -> None:
        self.track(EVENT_TRIAL_RESULT, participant_id, session_id, trial_record(result, participant_id))

    def track_session(self, summary: SessionSummary) -> None:
        self.track(EVENT_SESSION_END, summary.participant_id, summary.session_id, asdict(summary))

    def queue_size(self) -> int:
        return len(self.queue)

    # --------------------------
    # Отправка
    # --------------------------

    def flush(self, force: bool = False) -> None:
        if not self.enabled or not self.queue:
            return
        now = self.clock()
        due = len(self.queue) >= self.max_batch_size or (now - self.last_flush_ts) >= self.flush_interval_sec
        if not (force or due):
            return
        self.last_flush_ts = now

        batch = self.queue[: self.max_batch_size]
        sent = self._post(
            {
                "api_key": self.api_key,
                "client_version": self.client_version,
                "sent_at": _utc_now_iso(),
                "events": batch,
            }
        )
        if not sent:
            return
        del self.queue[: len(batch)]
        self.last_success_ts = self.clock()
        self._save_queue()
        if force and self.queue:
            self.flush(force=True)

    def _post(self, body: Dict[str, Any]) -> bool:
        req = request.Request(
            self.endpoint_url,
            data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        return self._request_ok(req, status_error="http_status_error", payload_error="invalid_server_response")

    def _request_ok(self, req: request.Request, status_error: str, payload_error: str) -> bool:
        """Запрос считается успешным только при 200 и {"ok": true} в ответе."""
        try:
            with request.urlopen(req, timeout=self.timeout_sec) as resp:
                if resp.status != 200:
                    self.last_error = status_error
                    return False
                data = json.loads(resp.read().decode("utf-8") or "{}")
        except (error.URLError, error.HTTPError, TimeoutError, OSError, json.JSONDecodeError):
            self.last_error = "connection_error"
            return False
        if not isinstance(data, dict) or data.get("ok") is not True:
            self.last_error = payload_error
            return False
        self.last_error = ""
        return True

    # --------------------------
    # Проверка связи
    # --------------------------

    @staticmethod
    def is_valid_endpoint(url: str) -> bool:
        parsed = urlparse((url or "").strip())
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def health_url(self) -> str:
        if "/v1/events" in self.endpoint_url:
            return self.endpoint_url.replace("/v1/events", "/health")
        return f"{self.endpoint_url.rstrip('/')}/health"

    def check_connection(self) -> tuple:
        if not self.enabled:
            self.last_error = "disabled"
            return False, "Телеметрия выключена (нет адреса или ключа)"
        if not self.is_valid_endpoint(self.endpoint_url):
            self.last_error = "invalid_url"
            return False, "Неверный адрес сервера"
        req = request.Request(self.health_url(), method="GET")
        if self._request_ok(req, status_error="health_status_error", payload_error="health_payload_error"):
            self.last_success_ts = self.clock()
            return True, "Подключение подтверждено"
        if self.last_error == "connection_error":
            return False, "Нет связи с сервером"
        return False, "Сервер ответил некорректно"

    # --------------------------
    # Очередь на диске
    # --------------------------

    def _load_queue(self) -> List[Dict[str, Any]]:
        try:
            return [rec for rec in self._store.read_all() if isinstance(rec, dict)]
        except (OSError, json.JSONDecodeError):
            # битый файл очереди не должен ломать запуск сессии
            return []

    def _save_queue(self) -> None:
        path: Path = self._store.path
        if not self.queue:
            path.unlink(missing_ok=True)
            return
        tmp = path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            for item in self.queue:
                f.write(json.dumps(item, ensure_ascii=False) + "\n")
        tmp.replace(path)
