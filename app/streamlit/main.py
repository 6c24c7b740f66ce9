"""
Main Streamlit application for competency extraction.
The sidebar picks the person/course; the page extracts competencies from
pasted content and lets the reviewer reconcile them one by one.

Run with:
    streamlit run app/streamlit/main.py
"""
import streamlit as st

from app.models.competency import EntityKind
from app.streamlit.components.extraction_section import render_extraction_section
from app.streamlit.components.review_section import render_review_section
from app.streamlit.config.settings import PAGE_CONFIG
from app.streamlit.services.api_client import ApiError, create_entity


def render_entity_sidebar():
    """
    Select or register the entity competencies are added to.
    """
    with st.sidebar:
        st.header("Target")
        kind = st.radio(
            "Kind",
            options=list(EntityKind),
            format_func=lambda k: "Person" if k == EntityKind.PERSON else "Course",
            horizontal=True,
        )
        if kind != st.session_state.entity_kind:
            st.session_state.entity_kind = kind
            st.session_state.reconciliation = None

        entity_id = st.text_input("Id", value=st.session_state.entity_id)
        if entity_id != st.session_state.entity_id:
            st.session_state.entity_id = entity_id.strip()
            st.session_state.reconciliation = None

        st.session_state.entity_name = st.text_input(
            "Name", value=st.session_state.entity_name
        )

        if st.button("Register new", disabled=not st.session_state.entity_name):
            try:
                entity = create_entity(kind, st.session_state.entity_name)
            except ApiError as e:
                st.error(f"Could not register: {e}")
            else:
                st.session_state.entity_id = entity["id"]
                st.session_state.reconciliation = None
                st.success(f"Registered {entity['name']} ({entity['id']})")
                st.rerun()


def main():
    """
    Main application entry point.
    """
    st.set_page_config(**PAGE_CONFIG)

    # Initialize session state
    if "entity_kind" not in st.session_state:
        st.session_state.entity_kind = EntityKind.PERSON
    if "entity_id" not in st.session_state:
        st.session_state.entity_id = ""
    if "entity_name" not in st.session_state:
        st.session_state.entity_name = ""
    if "processing" not in st.session_state:
        st.session_state.processing = False
    if "reconciliation" not in st.session_state:
        st.session_state.reconciliation = None

    st.title("Competency Extraction")
    st.caption("Extract competencies from a CV or course description and add them without duplicates")

    render_entity_sidebar()
    render_extraction_section()
    render_review_section()


if __name__ == "__main__":
    main()
