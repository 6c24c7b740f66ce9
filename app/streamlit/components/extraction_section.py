"""
Extraction section component for the Streamlit app.
Collects the content, runs the extraction stream and starts a new
reconciliation session from its result.
"""
import streamlit as st

from app.models.competency import (
    EntityKind,
    ExcludedCompetency,
    ExtractionRequest,
)
from app.models.api_responses import ExtractionEventType
from app.services.reconciliation import ReconciliationSession
from app.streamlit.services.api_client import (
    ApiError,
    commit_candidate,
    fetch_entity_competencies,
    resolve_candidate,
    stream_extraction,
)
from app.streamlit.utils.validators import validate_content, validate_entity_id


def _make_commit_fn(entity_kind: EntityKind, entity_id: str):
    async def commit_fn(request):
        return commit_candidate(entity_kind, entity_id, request)

    return commit_fn


async def _resolve_fn(request):
    return resolve_candidate(request)


def render_extraction_section():
    """
    Render the content input and run extraction on submit.
    """
    entity_kind = st.session_state.entity_kind
    entity_id = st.session_state.entity_id

    with st.form("extraction_form"):
        content = st.text_area(
            "Content",
            height=240,
            placeholder="Paste a CV, a course description, ...",
        )
        context_hint = st.text_input(
            "Context hint (optional)",
            placeholder="e.g. This is the CV of a data analyst",
        )
        submitted = st.form_submit_button(
            "Extract competencies",
            disabled=st.session_state.processing,
        )

    if not submitted:
        return

    is_valid_entity, entity_message = validate_entity_id(entity_id)
    if not is_valid_entity:
        st.error(entity_message)
        return

    is_valid_content, content_message = validate_content(content)
    if not is_valid_content:
        st.error(content_message)
        return

    run_extraction(entity_kind, entity_id, content, context_hint)


def run_extraction(entity_kind: EntityKind, entity_id: str, content: str, context_hint: str):
    """
    Stream one extraction and replace the current reconciliation session.
    """
    st.session_state.processing = True
    # Re-running discards every decision of the previous run
    st.session_state.reconciliation = None

    try:
        links = fetch_entity_competencies(entity_kind, entity_id)
    except ApiError as e:
        st.session_state.processing = False
        st.error(f"Could not load existing competencies: {e}")
        return

    existing = [
        ExcludedCompetency(
            id=link["competency"]["id"],
            name=link["competency"]["name"],
            type=link["competency"]["type"],
        )
        for link in links
    ]
    request = ExtractionRequest(
        content=content,
        context_hint=context_hint or None,
        entity_name=st.session_state.entity_name or None,
        exclude_competencies=existing,
    )

    with st.status("Extracting competencies...", expanded=True) as status:
        try:
            for event in stream_extraction(request):
                if event.type == ExtractionEventType.INFO:
                    st.write(event.message)
                elif event.type == ExtractionEventType.ERROR:
                    status.update(label=f"Extraction failed: {event.message}", state="error")
                elif event.type == ExtractionEventType.RESULT:
                    st.session_state.reconciliation = ReconciliationSession.from_event(
                        event,
                        existing_competency_ids=[c.id for c in existing],
                        commit_fn=_make_commit_fn(entity_kind, entity_id),
                        resolve_fn=_resolve_fn,
                    )
                    count = len(event.extracted_competencies or [])
                    status.update(label=f"Found {count} competencies", state="complete")
        except ApiError as e:
            status.update(label=f"Extraction failed: {e}", state="error")
        finally:
            st.session_state.processing = False
