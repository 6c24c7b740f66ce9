"""
Tests for the Competency Catalog and the embedding backfill job
"""

import pytest

from app.models.competency import CompetencyType, EntityKind, Proficiency
from app.services.catalog import (
    CompetencyConflictError,
    CompetencyInUseError,
    CompetencyNotFoundError,
    EntityConflictError,
    EntityNotFoundError,
    LinkConflictError,
)
from app.services.embedding_backfill import backfill_embeddings
from conftest import add_competency, unit


def test_create_and_find_case_insensitive(catalog):
    """Test that lookups ignore case and extra whitespace."""
    created = catalog.create("Machine  Learning", CompetencyType.KNOWLEDGE, "ML basics")

    assert created.name == "Machine Learning"
    assert created.id and not created.id.startswith("+")
    found = catalog.find_by_name_and_type(" machine learning ", CompetencyType.KNOWLEDGE)
    assert found.id == created.id
    assert catalog.find_by_name_and_type("machine learning", CompetencyType.SKILL) is None


def test_create_duplicate_name_type_conflicts(catalog):
    catalog.create("Python", CompetencyType.TECH_TOOL)

    with pytest.raises(CompetencyConflictError) as exc_info:
        catalog.create("PYTHON", CompetencyType.TECH_TOOL)

    assert exc_info.value.type == CompetencyType.TECH_TOOL
    # same name, different type is fine
    catalog.create("Python", CompetencyType.SKILL)


def test_create_rejects_blank_name(catalog):
    with pytest.raises(ValueError):
        catalog.create("   ", CompetencyType.SKILL)


def test_list_filters(catalog):
    catalog.create("Python", CompetencyType.TECH_TOOL)
    catalog.create("Public Speaking", CompetencyType.BEHAVIOUR)
    catalog.create("Python Draft", CompetencyType.SKILL, is_draft=True)

    assert [c.name for c in catalog.list(search="PYTH")] == ["Python", "Python Draft"]
    assert [c.name for c in catalog.list(competency_type=CompetencyType.BEHAVIOUR)] == [
        "Public Speaking"
    ]
    assert "Python Draft" not in [c.name for c in catalog.list(include_drafts=False)]


def test_get_many_skips_unknown_ids(catalog):
    python = catalog.create("Python", CompetencyType.TECH_TOOL)

    found = catalog.get_many([python.id, "missing", python.id])

    assert list(found) == [python.id]


def test_links_are_unique_per_entity(catalog):
    course = catalog.add_entity(EntityKind.COURSE, "Intro to Data")
    python = catalog.create("Python", CompetencyType.TECH_TOOL)

    catalog.link(EntityKind.COURSE, course.id, python.id, Proficiency.BEGINNER)
    with pytest.raises(LinkConflictError):
        catalog.link(EntityKind.COURSE, course.id, python.id)

    links = catalog.linked_competencies(EntityKind.COURSE, course.id)
    assert len(links) == 1
    assert links[0].competency.name == "Python"
    assert links[0].proficiency == Proficiency.BEGINNER
    # a person with the same id space is unaffected
    assert catalog.linked_competency_ids(EntityKind.PERSON, course.id) == set()


def test_require_entity(catalog):
    person = catalog.add_entity(EntityKind.PERSON, "Jane", entity_id="jane-1")

    assert catalog.require_entity(EntityKind.PERSON, "jane-1") is person
    with pytest.raises(EntityNotFoundError):
        catalog.require_entity(EntityKind.COURSE, "jane-1")


def test_delete_refuses_referenced_competency(catalog):
    person = catalog.add_entity(EntityKind.PERSON, "Jane")
    python = catalog.create("Python", CompetencyType.TECH_TOOL)
    unused = catalog.create("Fortran", CompetencyType.TECH_TOOL)
    catalog.link(EntityKind.PERSON, person.id, python.id)

    with pytest.raises(CompetencyInUseError):
        catalog.delete(python.id)

    catalog.delete(unused.id)
    assert catalog.get(unused.id) is None
    with pytest.raises(CompetencyNotFoundError):
        catalog.delete(unused.id)


async def test_backfill_embeds_missing_and_counts_failures(catalog, embedder, index, fake_embeddings):
    """Test that the job continues past failures."""
    add_competency(catalog, "Already Embedded", CompetencyType.SKILL, unit(1.0))
    sql = add_competency(catalog, "SQL", CompetencyType.TECH_TOOL)
    broken = add_competency(catalog, "Broken", CompetencyType.SKILL)
    fake_embeddings.fail_on.add("broken")

    result = await backfill_embeddings(catalog, embedder, index)

    assert result.total == 2
    assert result.processed == 1
    assert result.failed == 1
    assert result.failed_ids == [broken.id]
    assert catalog.has_embedding(sql.id)
    assert [c.id for c in catalog.competencies_missing_embeddings()] == [broken.id]


def test_add_entity_rejects_taken_id(catalog):
    catalog.add_entity(EntityKind.COURSE, "Intro to Data", entity_id="course-1")

    with pytest.raises(EntityConflictError):
        catalog.add_entity(EntityKind.COURSE, "Intro to Data II", entity_id="course-1")
    # same id under the other kind is a different entity
    catalog.add_entity(EntityKind.PERSON, "Jane", entity_id="course-1")
