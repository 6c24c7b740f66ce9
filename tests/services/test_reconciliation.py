"""
Tests for the Reconciliation State Machine
"""

import pytest

from app.models.api_responses import CommitResponse, ExtractionEvent
from app.models.competency import (
    Candidate,
    CompetencyType,
    EntityKind,
    Proficiency,
    SimilarOption,
    new_provisional_id,
)
from app.services.catalog import CompetencyConflictError, LinkConflictError
from app.services.commit import CommitOperation, DraftValidationError, LinkCreationError
from app.services.reconciliation import (
    InvalidTransitionError,
    ItemAction,
    ReconciliationSession,
)
from conftest import add_competency, unit


def provisional(name="Statistical Analysis", competency_type=CompetencyType.SKILL, similar=()):
    return Candidate(
        id=new_provisional_id(),
        name=name,
        type=competency_type,
        description=f"{name} description",
        suggested_proficiency=Proficiency.INTERMEDIATE,
        similar=list(similar),
    )


MODELING = SimilarOption(
    id="modeling-id",
    name="Statistical Modeling",
    type=CompetencyType.KNOWLEDGE,
    description="Models",
    similarity=0.74,
)
INTEGRITY = SimilarOption(
    id="integrity-id", name="Integrity", type=CompetencyType.VALUE, similarity=0.6
)


class RecordingCommit:
    """commit_fn double returning a canned result or raising."""

    def __init__(self, error=None, competency_id="real-id"):
        self.error = error
        self.competency_id = competency_id
        self.requests = []

    async def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return CommitResponse(
            status="added",
            candidate_id=request.candidate_id,
            competency_id=self.competency_id,
            created_competency=True,
        )


def test_items_get_stable_keys_and_defaults():
    """Test keys, default selection and proficiency."""
    candidates = [provisional("A"), provisional("Integrity", CompetencyType.VALUE)]
    session = ReconciliationSession(candidates)

    first, second = session.items()
    assert (first.key, second.key) == ("cand-0", "cand-1")
    assert first.selected_option_id == candidates[0].id
    assert first.action == ItemAction.PENDING
    assert first.proficiency == Proficiency.INTERMEDIATE
    # VALUE does not support proficiency, suggestion dropped
    assert second.proficiency is None


def test_from_event_requires_result():
    with pytest.raises(ValueError):
        ReconciliationSession.from_event(ExtractionEvent.info("Starting"))

    session = ReconciliationSession.from_event(
        ExtractionEvent.result([provisional()], entity_name="Jane")
    )
    assert session.entity_name == "Jane"
    assert len(session.items()) == 1


def test_select_option_and_draft_editing():
    """Test that drafts are editable only while the candidate itself is selected."""
    session = ReconciliationSession([provisional(similar=[MODELING])])

    session.edit_draft("cand-0", "name", "  Statistical Analytics ")
    assert session.get("cand-0").draft.name == "Statistical Analytics"

    session.select_option("cand-0", MODELING.id)
    item = session.get("cand-0")
    assert not item.is_draft_selected
    assert item.effective_type == CompetencyType.KNOWLEDGE
    with pytest.raises(InvalidTransitionError):
        session.edit_draft("cand-0", "name", "Other")


def test_select_unknown_option_is_rejected():
    session = ReconciliationSession([provisional(similar=[MODELING])])
    with pytest.raises(InvalidTransitionError):
        session.select_option("cand-0", "not-an-option")


def test_already_linked_option_is_not_selectable():
    """Test the already-added invariant at selection time."""
    session = ReconciliationSession(
        [provisional(similar=[MODELING])], existing_competency_ids={MODELING.id}
    )

    assert not session.is_option_selectable("cand-0", MODELING.id)
    with pytest.raises(InvalidTransitionError):
        session.select_option("cand-0", MODELING.id)


def test_edit_draft_validation():
    session = ReconciliationSession([provisional()])

    with pytest.raises(DraftValidationError):
        session.edit_draft("cand-0", "id", "x")
    with pytest.raises(DraftValidationError):
        session.edit_draft("cand-0", "type", "HOBBY")


def test_type_change_clears_unsupported_proficiency():
    session = ReconciliationSession([provisional()])

    session.edit_draft("cand-0", "type", "VALUE")

    item = session.get("cand-0")
    assert item.draft.type == CompetencyType.VALUE
    assert item.proficiency is None


def test_set_proficiency_only_for_supporting_types():
    session = ReconciliationSession([provisional(similar=[INTEGRITY])])

    session.set_proficiency("cand-0", Proficiency.EXPERT)
    assert session.get("cand-0").proficiency == Proficiency.EXPERT

    session.select_option("cand-0", INTEGRITY.id)
    with pytest.raises(DraftValidationError):
        session.set_proficiency("cand-0", Proficiency.BEGINNER)
    session.set_proficiency("cand-0", None)


async def test_proficiency_survives_switching_options():
    """Test that picking a non-proficiency option and back keeps the level."""
    commit = RecordingCommit()
    session = ReconciliationSession([provisional(similar=[INTEGRITY])], commit_fn=commit)
    candidate_id = session.get("cand-0").candidate.id

    session.set_proficiency("cand-0", Proficiency.EXPERT)
    session.select_option("cand-0", INTEGRITY.id)
    assert session.build_request("cand-0").proficiency is None

    session.select_option("cand-0", candidate_id)
    assert session.get("cand-0").proficiency == Proficiency.EXPERT

    await session.commit("cand-0")
    assert commit.requests[0].proficiency == Proficiency.EXPERT


def test_ignore_and_unignore():
    """Test hidden items and re-showing them."""
    session = ReconciliationSession([provisional("A"), provisional("B")])

    session.ignore("cand-1")

    assert [i.key for i in session.visible_items()] == ["cand-0"]
    assert [i.key for i in session.visible_items(show_ignored=True)] == ["cand-0", "cand-1"]
    assert session.summary()["ignored"] == 1
    with pytest.raises(InvalidTransitionError):
        session.select_option("cand-1", session.get("cand-1").candidate.id)

    session.unignore("cand-1")
    assert session.get("cand-1").action == ItemAction.PENDING
    with pytest.raises(InvalidTransitionError):
        session.unignore("cand-1")


async def test_commit_success_marks_added():
    commit = RecordingCommit(competency_id="new-id")
    session = ReconciliationSession([provisional()], commit_fn=commit)

    item = await session.commit("cand-0")

    assert item.action == ItemAction.ADDED
    assert item.committed_competency_id == "new-id"
    assert "new-id" in session.existing_competency_ids
    request = commit.requests[0]
    assert request.candidate_id == "cand-0"
    assert request.draft.name == "Statistical Analysis"
    assert request.proficiency == Proficiency.INTERMEDIATE
    assert session.summary() == {"pending": 0, "adding": 0, "added": 1, "ignored": 0, "total": 1}

    # added is final
    with pytest.raises(InvalidTransitionError):
        await session.commit("cand-0")
    with pytest.raises(InvalidTransitionError):
        session.ignore("cand-0")


async def test_commit_existing_option_sends_no_draft():
    commit = RecordingCommit(competency_id=MODELING.id)
    session = ReconciliationSession([provisional(similar=[MODELING])], commit_fn=commit)
    session.select_option("cand-0", MODELING.id)

    await session.commit("cand-0")

    request = commit.requests[0]
    assert request.selected_option_id == MODELING.id
    assert request.draft is None


async def test_commit_already_added_candidate_is_refused():
    """Test that an exact match already linked cannot be committed."""
    existing = Candidate(id="python-id", name="Python", type=CompetencyType.TECH_TOOL)
    commit = RecordingCommit()
    session = ReconciliationSession(
        [existing], existing_competency_ids={"python-id"}, commit_fn=commit
    )

    assert session.is_already_added("cand-0")
    with pytest.raises(InvalidTransitionError):
        await session.commit("cand-0")
    assert commit.requests == []


async def test_link_conflict_counts_as_added():
    commit = RecordingCommit(error=LinkConflictError("python-id"))
    session = ReconciliationSession([provisional()], commit_fn=commit)

    item = await session.commit("cand-0")

    assert item.action == ItemAction.ADDED
    assert item.error is None
    assert "python-id" in session.existing_competency_ids


async def test_failure_reverts_to_pending_with_error():
    commit = RecordingCommit(error=RuntimeError("backend down"))
    session = ReconciliationSession([provisional()], commit_fn=commit)

    item = await session.commit("cand-0")

    assert item.action == ItemAction.PENDING
    assert item.error == "backend down"


async def test_invalid_draft_is_not_committed():
    commit = RecordingCommit()
    session = ReconciliationSession([provisional()], commit_fn=commit)
    session.edit_draft("cand-0", "name", "   ")

    item = await session.commit("cand-0")

    assert item.action == ItemAction.PENDING
    assert "name" in item.error
    assert commit.requests == []


async def test_link_failure_switches_to_created_competency():
    """Test that a retry after a link failure only links."""
    commit = RecordingCommit(error=LinkCreationError("created-id", "link failed"))
    session = ReconciliationSession([provisional(similar=[MODELING])], commit_fn=commit)

    item = await session.commit("cand-0")

    assert item.action == ItemAction.PENDING
    assert item.selected_option_id == "created-id"
    assert not item.is_draft_selected

    commit.error = None
    commit.competency_id = "created-id"
    await session.commit("cand-0")
    assert commit.requests[-1].selected_option_id == "created-id"
    assert commit.requests[-1].draft is None


async def test_name_conflict_without_resolver_flags_reresolve():
    commit = RecordingCommit(error=CompetencyConflictError("Statistical Analysis", CompetencyType.SKILL))
    session = ReconciliationSession([provisional()], commit_fn=commit)

    item = await session.commit("cand-0")

    assert item.action == ItemAction.PENDING
    assert item.needs_reresolve
    assert "already exists" in item.error


async def test_name_conflict_reresolves_to_existing_competency():
    """Test that the race loser ends up pointing at the winner."""
    commit = RecordingCommit(error=CompetencyConflictError("Statistical Analysis", CompetencyType.SKILL))

    async def resolve_fn(request):
        return Candidate(
            id="winner-id",
            name="Statistical Analysis",
            type=request.type,
            suggested_proficiency=request.suggested_proficiency,
        )

    session = ReconciliationSession([provisional()], commit_fn=commit, resolve_fn=resolve_fn)

    item = await session.commit("cand-0")

    assert item.action == ItemAction.PENDING
    assert not item.needs_reresolve
    assert item.selected_option_id == "winner-id"
    assert item.key == "cand-0"

    commit.error = None
    commit.competency_id = "winner-id"
    await session.commit("cand-0")
    assert commit.requests[-1].selected_option_id == "winner-id"


async def test_session_with_real_commit_operation(catalog, embedder, index, fake_embeddings):
    """Test the session driving the commit operation against the catalog."""
    person = catalog.add_entity(EntityKind.PERSON, "Jane")
    modeling = add_competency(catalog, "Statistical Modeling", CompetencyType.KNOWLEDGE, unit(1.0))
    operation = CommitOperation(catalog, embedder, index)

    async def commit_fn(request):
        return await operation.commit(EntityKind.PERSON, person.id, request)

    similar = SimilarOption(
        id=modeling.id, name=modeling.name, type=modeling.type, similarity=0.74
    )
    session = ReconciliationSession(
        [provisional(similar=[similar]), provisional("Data Storytelling")],
        commit_fn=commit_fn,
    )
    session.select_option("cand-0", modeling.id)

    await session.commit("cand-0")
    await session.commit("cand-1")

    assert session.summary()["added"] == 2
    linked = catalog.linked_competency_ids(EntityKind.PERSON, person.id)
    assert modeling.id in linked
    assert len(linked) == 2
    assert catalog.find_by_name_and_type("Statistical Analysis", CompetencyType.SKILL) is None
