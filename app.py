import time

import streamlit as st

from briefing_agent.core.bootstrap import configure_logging, ensure_data_dirs
from briefing_agent.core.config import show_debug
from briefing_agent.core.constants import FIELD_LABELS
from briefing_agent.core.service import BriefingWorkspace
from briefing_agent.export.exporter_md import EXPORT_ORDER

SHOW_DEBUG = show_debug()

# MUST be first Streamlit call
st.set_page_config(
    page_title="Briefing Agent",
    layout="wide",
    initial_sidebar_state="expanded",
)

configure_logging()
ensure_data_dirs()

# ---------- CSS ----------
st.markdown(
    """
<style>
.block-container {
  padding-top: 1.0rem;
  max-width: 1250px;
}

button[kind="primary"] {
  border-radius: 18px !important;
  font-weight: 700 !important;
}

button:focus, button:focus-visible {
  outline: none !important;
  box-shadow: none !important;
}

div[data-testid="stChatMessage"] [data-testid="stChatMessageContent"] {
  padding: 10px 12px !important;
  border-radius: 14px !important;
}

.ba-step { font-size: 13px; padding: 2px 0; }
.ba-step.completed { color: #2e7d32; }
.ba-step.current { font-weight: 800; }
.ba-step.pending { opacity: 0.55; }
</style>
""",
    unsafe_allow_html=True,
)


# ---------- Helpers ----------
def _inline_scheduler(delay: float, fn):
    # Streamlit only repaints on rerun, so the delayed review message is emitted in-request.
    time.sleep(delay)
    fn()
    return None


def _workspace() -> BriefingWorkspace:
    if "workspace" not in st.session_state:
        st.session_state["workspace"] = BriefingWorkspace(scheduler=_inline_scheduler)
    return st.session_state["workspace"]


def _apply(payload: dict):
    st.session_state["payload"] = payload
    if payload.get("error"):
        st.session_state["flash"] = payload["error"]
    st.rerun()


ws = _workspace()
payload = ws.payload()

flash = st.session_state.pop("flash", None)
if flash:
    st.error(flash)

# ---------- Sidebar: briefs drawer + progress ----------
with st.sidebar:
    if SHOW_DEBUG:
        st.header("Status")
        st.write(f"**USE_LLM:** `{payload.get('use_llm')}`")
        st.write(f"**Brief:** `{payload['brief_id']}`")
        st.divider()

    st.subheader("Your Briefs")
    if st.button("New Brief", type="primary", use_container_width=True):
        _apply(ws.new_brief())

    for b in payload["briefs"]:
        c1, c2 = st.columns([5, 1])
        with c1:
            marker = "▸ " if b["current"] else ""
            badge = " ✓" if b["status"] == "complete" else ""
            if st.button(f"{marker}{b['title']}{badge}", key=f"open_{b['id']}", use_container_width=True):
                _apply(ws.select_brief(b["id"]))
            st.caption(b["updated"])
        with c2:
            if st.button("🗑", key=f"del_{b['id']}"):
                _apply(ws.delete_brief(b["id"]))

    st.divider()
    st.subheader("Progress")
    for step in payload["progress"]:
        icon = {"completed": "✅", "current": "🔵", "pending": "⚪"}[step["state"]]
        jump_allowed = payload["status"] != "complete" and step["phase"] != payload["phase"]
        if jump_allowed and st.button(f"{icon} {step['label']}", key=f"jump_{step['phase']}"):
            _apply(ws.jump(step["phase"]))
        elif not jump_allowed:
            st.markdown(
                f'<div class="ba-step {step["state"]}">{icon} {step["label"]}</div>',
                unsafe_allow_html=True,
            )
        st.caption(step["description"])

# ---------- Tabs ----------
if SHOW_DEBUG:
    tab_chat, tab_preview, tab_debug = st.tabs(["Chat", "Brief Preview", "Debug"])
else:
    tab_chat, tab_preview = st.tabs(["Chat", "Brief Preview"])

with tab_chat:
    for m in payload["messages"]:
        with st.chat_message(m["role"]):
            st.markdown(m["content"])

    # --- Action chips ---
    actions = payload["actions"]
    if actions:
        cols = st.columns(len(actions))
        for col, a in zip(cols, actions):
            with col:
                if st.button(a["label"], key=f"act_{a['id']}", type="primary" if a["primary"] else "secondary"):
                    with st.spinner("Thinking..."):
                        _apply(ws.action(a["id"]))

    # --- Knowledge check panel ---
    if payload["phase"] == "knowledge_check":
        kc = payload["knowledge_check"]
        st.markdown("### Knowledge Check")
        st.caption("Search for existing research that may already answer your questions.")

        if kc["error"]:
            st.error(kc["error"])

        if kc["status"] == "idle":
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Run Knowledge Check", type="primary"):
                    with st.spinner("Searching existing research..."):
                        _apply(ws.run_knowledge_check())
            with c2:
                if st.button("Skip"):
                    _apply(ws.skip_knowledge_check())
        elif kc["status"] == "complete" and kc["result"]:
            r = kc["result"]
            st.markdown(f"**{r['icon']} {r['label']}**  \n{r['description']}")
            m1, m2 = st.columns(2)
            m1.metric("Confidence", f"{r['confidence']}%", help=f"{r['confidence_band']} confidence")
            m2.metric("Sources", r["source_count"])
            st.markdown("**What We Found**")
            for f in r["findings"]:
                st.markdown(f"- {f}")
            st.markdown("**Remaining Knowledge Gaps**")
            for g in r["remaining_gaps"]:
                st.markdown(f"- {g}")
            if st.button("Continue to Review", type="primary"):
                _apply(ws.continue_knowledge_check())
        else:
            st.info(kc["status_text"])

    # --- Document bootstrap ---
    with st.expander("Start from an existing document"):
        uploaded = st.file_uploader(
            "Upload a brief",
            type=["pdf", "docx", "doc", "txt", "md"],
            accept_multiple_files=False,
        )
        if uploaded is not None and st.button("Extract from file", type="primary"):
            with st.spinner("Extracting brief elements..."):
                _apply(ws.upload(uploaded.getvalue(), uploaded.name))

        pasted = st.text_area("Or paste text", key="paste_text")
        if st.button("Extract from text"):
            with st.spinner("Extracting brief elements..."):
                _apply(ws.paste(pasted))

    # --- Skip ahead ---
    if st.button("Next Section", disabled=payload["phase"] in ("knowledge_check", "done") or payload["busy"]):
        _apply(ws.advance())

    # --- Normal chat input ---
    user_msg = st.chat_input(
        "Type your answer...",
        disabled=payload["busy"] or payload["phase"] == "knowledge_check",
    )
    if user_msg:
        with st.spinner("Thinking..."):
            _apply(ws.submit(user_msg))

with tab_preview:
    st.subheader("Research Brief")
    for field in EXPORT_ORDER:
        with st.expander(FIELD_LABELS[field], expanded=True):
            value = st.text_area(
                FIELD_LABELS[field],
                value=payload["brief"][field],
                key=f"edit_{payload['brief_id']}_{field}",
                label_visibility="collapsed",
            )
            if value != payload["brief"][field] and st.button("Save", key=f"save_{field}"):
                _apply(ws.edit_field(field, value))

    st.divider()
    c1, c2 = st.columns(2)
    with c1:
        st.download_button(
            "Download Markdown",
            data=ws.preview_markdown(),
            file_name=f"brief_{payload['brief_id']}.md",
            mime="text/markdown",
        )
    with c2:
        if st.button("Export DOCX", type="primary"):
            res = ws.export(fmt="docx")
            st.success(f"DOCX: {res['path']}")

if SHOW_DEBUG:
    with tab_debug:
        st.subheader("Payload (Debug)")
        st.json({k: v for k, v in payload.items() if k != "messages"})
