"""
Review section component for the Streamlit app.
Renders one row per candidate of the current reconciliation session and
routes every user action through the session's transitions.
"""
import asyncio

import streamlit as st

from app.models.competency import CompetencyType, Proficiency, supports_proficiency
from app.services.commit import DraftValidationError
from app.services.reconciliation import (
    InvalidTransitionError,
    ItemAction,
    ReconciliationSession,
)

ACTION_BADGES = {
    ItemAction.PENDING: "🕓 Pending",
    ItemAction.ADDING: "⏳ Adding...",
    ItemAction.ADDED: "✅ Added",
    ItemAction.IGNORED: "🙈 Ignored",
}


def _option_label(option) -> str:
    if option.is_primary:
        prefix = "New: " if option.is_provisional else "Existing: "
        return f"{prefix}{option.name} ({option.type.value})"
    return f"Similar: {option.name} ({option.type.value}, {option.similarity:.0%})"


def render_review_section():
    """
    Render the candidates of the current extraction run.
    """
    session: ReconciliationSession | None = st.session_state.get("reconciliation")
    if session is None:
        return

    summary = session.summary()
    st.subheader("Review competencies")
    st.caption(
        f"{summary['added']} added · {summary['pending']} pending · "
        f"{summary['ignored']} ignored · {summary['total']} total"
    )
    show_ignored = st.toggle("Show ignored", key="show_ignored")

    for item in session.visible_items(show_ignored=show_ignored):
        with st.container(border=True):
            _render_item(session, item)


def _render_item(session: ReconciliationSession, item):
    key = item.key
    already_added = session.is_already_added(key)
    editable = item.action == ItemAction.PENDING and not already_added

    header, badge = st.columns([4, 1])
    header.markdown(f"**{item.selected_option.name}**")
    badge.markdown("✅ Already added" if already_added else ACTION_BADGES[item.action])

    options = item.options()
    labels = [_option_label(o) for o in options]
    ids = [o.id for o in options]
    selected = st.radio(
        "Identity",
        options=range(len(options)),
        index=ids.index(item.selected_option_id) if item.selected_option_id in ids else 0,
        format_func=lambda i: labels[i],
        key=f"{key}-option",
        disabled=not editable,
        label_visibility="collapsed",
    )
    if editable and ids[selected] != item.selected_option_id:
        _apply(lambda: session.select_option(key, ids[selected]))

    if item.is_draft_selected and editable:
        name = st.text_input("Name", value=item.draft.name, key=f"{key}-name")
        if name != item.draft.name:
            _apply(lambda: session.edit_draft(key, "name", name))
        types = list(CompetencyType)
        new_type = st.selectbox(
            "Type",
            options=types,
            index=types.index(item.draft.type),
            format_func=lambda t: t.value,
            key=f"{key}-type",
        )
        if new_type != item.draft.type:
            _apply(lambda: session.edit_draft(key, "type", new_type))
        description = st.text_area(
            "Description", value=item.draft.description or "", key=f"{key}-description"
        )
        if (description or None) != item.draft.description:
            _apply(lambda: session.edit_draft(key, "description", description))
    elif item.selected_option.description:
        st.caption(item.selected_option.description)

    if supports_proficiency(item.effective_type):
        levels = [None] + list(Proficiency)
        proficiency = st.selectbox(
            "Proficiency",
            options=levels,
            index=levels.index(item.proficiency),
            format_func=lambda p: "Not set" if p is None else p.value.title(),
            key=f"{key}-proficiency",
            disabled=not editable,
        )
        if editable and proficiency != item.proficiency:
            _apply(lambda: session.set_proficiency(key, proficiency))

    if item.error:
        st.warning(item.error)

    add_col, ignore_col = st.columns(2)
    if item.action == ItemAction.IGNORED:
        if ignore_col.button("Show again", key=f"{key}-unignore"):
            _apply(lambda: session.unignore(key))
            st.rerun()
    elif editable:
        if add_col.button("Add", key=f"{key}-add", type="primary"):
            with st.spinner("Adding..."):
                asyncio.run(session.commit(key))
            st.rerun()
        if ignore_col.button("Ignore", key=f"{key}-ignore"):
            _apply(lambda: session.ignore(key))
            st.rerun()


def _apply(transition):
    """Run a session transition and show a rejected one as a warning."""
    try:
        transition()
    except (InvalidTransitionError, DraftValidationError) as e:
        st.warning(str(e))
