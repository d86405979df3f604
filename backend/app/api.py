from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from backend.app.config import Settings, load_settings
from backend.app.db import ensure_db, read_events, write_batch
from backend.app.sessions import (
    EVENT_SESSION_END,
    EVENT_TRIAL_RESULT,
    accuracy_by_task,
    build_participant_rows,
    trials_for_participant,
)

REQUIRED_EVENT_FIELDS = ("event_id", "event_type", "event_ts", "user_id", "session_id", "payload")
ALLOWED_EVENT_TYPES = (EVENT_TRIAL_RESULT, EVENT_SESSION_END)


def _validate_events(events: Any, max_events: int) -> list[dict[str, Any]]:
    if not isinstance(events, list) or not events:
        raise HTTPException(status_code=400, detail="events_must_be_nonempty_list")
    if len(events) > max_events:
        raise HTTPException(status_code=400, detail="batch_too_large")

    normalized: list[dict[str, Any]] = []
    for idx, event in enumerate(events):
        if not isinstance(event, dict):
            raise HTTPException(status_code=400, detail=f"event_{idx}_must_be_object")
        missing = [f for f in REQUIRED_EVENT_FIELDS if f not in event]
        if missing:
            raise HTTPException(status_code=400, detail=f"event_{idx}_missing_fields:{','.join(missing)}")
        if event["event_type"] not in ALLOWED_EVENT_TYPES:
            raise HTTPException(status_code=400, detail=f"event_{idx}_unknown_type:{event['event_type']}")
        normalized.append(event)
    return normalized


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="ACCT Trials API", version="0.1.0")

    @app.on_event("startup")
    def _startup() -> None:
        ensure_db(settings.db_path)

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/v1/events")
    def ingest_events(body: dict[str, Any]) -> JSONResponse:
        api_key = str(body.get("api_key", ""))
        if not api_key or api_key != settings.api_key:
            raise HTTPException(status_code=401, detail="invalid_api_key")

        events = _validate_events(body.get("events"), settings.max_batch_events)
        client_version = str(body.get("client_version", "unknown"))
        inserted = write_batch(
            db_path=settings.db_path,
            api_key=api_key,
            client_version=client_version,
            events=events,
        )
        return JSONResponse(content={"ok": True, "inserted": inserted}, status_code=200)

    @app.get("/v1/participants")
    def participants(limit: int = 100) -> dict[str, Any]:
        safe_limit = max(1, min(500, int(limit)))
        rows = build_participant_rows(settings.db_path, limit=safe_limit)
        return {"ok": True, "rows": rows, "count": len(rows), "limit": safe_limit}

    @app.get("/v1/sessions")
    def sessions(participant_id: Optional[str] = None, limit: int = 100) -> dict[str, Any]:
        events = read_events(
            settings.db_path,
            event_type=EVENT_SESSION_END,
            participant_id=participant_id,
            limit=limit,
        )
        rows = [event["payload"] for event in events]
        return {"ok": True, "rows": rows, "count": len(rows)}

    @app.get("/v1/participants/{participant_id}/trials")
    def participant_trials(participant_id: str, limit: int = 5000) -> dict[str, Any]:
        trials = trials_for_participant(settings.db_path, participant_id, limit=limit)
        return {
            "ok": True,
            "participant_id": participant_id,
            "rows": trials,
            "count": len(trials),
            "accuracy_by_task": accuracy_by_task(trials),
        }

    return app


app = create_app()
