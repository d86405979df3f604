from pathlib import Path
import sys

import streamlit as st

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from backend.app.config import load_settings
from backend.app.sessions import accuracy_by_task, build_participant_rows, trials_for_participant

st.set_page_config(page_title="ACCT Sessions", layout="wide")
settings = load_settings()

st.title("ACCT Sessions")
st.caption("Точность, время реакции и уровень сложности по участникам")

col1, col2 = st.columns([1, 2])
with col1:
    limit = st.number_input("Лимит строк", min_value=10, max_value=500, value=100, step=10)
with col2:
    participant = st.text_input("Участник", value="", placeholder="participant_id")

rows = build_participant_rows(Path(settings.db_path), limit=int(limit))

if not rows:
    st.warning("Пока нет завершённых сессий.")
    st.stop()

st.dataframe(rows, use_container_width=True, hide_index=True)

if participant.strip():
    trials = trials_for_participant(Path(settings.db_path), participant.strip())
    if not trials:
        st.info("По этому участнику нет trial-ов.")
    else:
        by_task = accuracy_by_task(trials)
        cols = st.columns(max(1, len(by_task)))
        for col, (task, acc) in zip(cols, sorted(by_task.items())):
            col.metric(task, f"{acc * 100:.1f}%")
        rts = [t["reaction_time_ms"] for t in trials if t.get("reaction_time_ms") is not None]
        if rts:
            st.line_chart({"reaction_time_ms": rts})
        levels = [t.get("difficulty_level", 0) for t in trials if t.get("task_type") == "stroop"]
        if levels:
            st.line_chart({"difficulty_level": levels})
        st.dataframe(trials, use_container_width=True, hide_index=True)

st.caption(f"Источник данных: {settings.db_path}")
