"""
Tests for the Extraction Orchestrator event stream
"""

import pytest

from app.ai_core.extraction import CompetencyExtractionError
from app.models.api_responses import ExtractionEventType
from app.models.competency import CompetencyType, ExcludedCompetency, ExtractionRequest
from app.services.extraction_orchestrator import ExtractionOrchestrator
from conftest import add_competency, make_item, make_output, unit

CONTENT = "Six years of Python, SQL and statistical analysis in retail."


async def collect(orchestrator, request):
    return [event async for event in orchestrator.extract(request)]


@pytest.fixture
def orchestrator(extractor, resolver):
    return ExtractionOrchestrator(extractor, resolver)


async def test_event_sequence(orchestrator, fake_llm):
    """Test starting info, one info per item, then exactly one result."""
    items = [make_item(f"Skill {i}") for i in range(1, 8)]
    fake_llm.output = make_output(*items)

    events = await collect(orchestrator, ExtractionRequest(content=CONTENT, entity_name="Jane"))

    assert events[0].type == ExtractionEventType.INFO
    assert events[0].message.startswith("Starting")
    processing = [e.message for e in events if e.message and e.message.startswith("Processing")]
    assert processing == [f"Processing {i}/7: Skill {i}" for i in range(1, 8)]
    terminal = [e for e in events if e.is_terminal]
    assert len(terminal) == 1 and terminal[0] is events[-1]
    result = events[-1]
    assert result.type == ExtractionEventType.RESULT
    assert result.entity_name == "Jane"
    assert [c.name for c in result.extracted_competencies] == [f"Skill {i}" for i in range(1, 8)]


async def test_partial_failure_drops_only_failing_candidate(orchestrator, fake_llm, fake_embeddings):
    """Test that candidate 3 of 7 failing leaves the other 6 and no error event."""
    fake_llm.output = make_output(*[make_item(f"Skill {i}") for i in range(1, 8)])
    fake_embeddings.fail_on.add("skill 3")

    events = await collect(orchestrator, ExtractionRequest(content=CONTENT))

    assert not any(e.type == ExtractionEventType.ERROR for e in events)
    names = [c.name for c in events[-1].extracted_competencies]
    assert names == ["Skill 1", "Skill 2", "Skill 4", "Skill 5", "Skill 6", "Skill 7"]


async def test_model_failure_is_fatal(orchestrator, fake_llm, fake_embeddings):
    """Test that a failed model call ends with a single error event."""
    fake_llm.error = CompetencyExtractionError("quota exceeded")

    events = await collect(orchestrator, ExtractionRequest(content=CONTENT))

    assert [e.type for e in events] == [ExtractionEventType.INFO, ExtractionEventType.ERROR]
    assert "quota exceeded" in events[-1].message
    assert fake_embeddings.calls == []


async def test_short_content_is_rejected(orchestrator, fake_llm):
    """Test that whitespace does not count towards the minimum length."""
    events = await collect(orchestrator, ExtractionRequest(content="  abc       "))

    assert events[-1].type == ExtractionEventType.ERROR
    assert fake_llm.messages is None


async def test_scenario_python_exact_match(orchestrator, fake_llm, catalog):
    """Test that an existing "Python" is resolved to its id with no alternatives."""
    python = add_competency(catalog, "Python", CompetencyType.TECH_TOOL, unit(1.0))
    fake_llm.output = make_output(make_item("Python", CompetencyType.TECH_TOOL))

    events = await collect(orchestrator, ExtractionRequest(content=CONTENT))

    candidate = events[-1].extracted_competencies[0]
    assert candidate.id == python.id
    assert candidate.similar == []


async def test_excluded_competencies_are_filtered(orchestrator, fake_llm, catalog):
    """Test the defensive filter for already-linked competencies."""
    sql = add_competency(catalog, "SQL", CompetencyType.TECH_TOOL, unit(1.0))
    fake_llm.output = make_output(
        make_item("SQL", CompetencyType.TECH_TOOL),
        make_item("Team Leadership", CompetencyType.BEHAVIOUR),
        make_item("Python", CompetencyType.TECH_TOOL),
    )
    request = ExtractionRequest(
        content=CONTENT,
        exclude_competencies=[
            ExcludedCompetency(id=sql.id, name="SQL", type=CompetencyType.TECH_TOOL),
            # not in the catalog under this id, matched by name and type
            ExcludedCompetency(id="elsewhere", name="team leadership", type=CompetencyType.BEHAVIOUR),
        ],
    )

    events = await collect(orchestrator, request)

    names = [c.name for c in events[-1].extracted_competencies]
    assert "SQL" not in names
    assert "Team Leadership" not in names
    assert "Python" in names


async def test_duplicate_candidates_are_collapsed(orchestrator, fake_llm):
    """Test that the same competency proposed twice appears once."""
    fake_llm.output = make_output(
        make_item("Python", CompetencyType.TECH_TOOL),
        make_item("python", CompetencyType.TECH_TOOL),
        make_item("Python", CompetencyType.SKILL),
    )

    events = await collect(orchestrator, ExtractionRequest(content=CONTENT))

    keys = [(c.name.lower(), c.type) for c in events[-1].extracted_competencies]
    assert keys.count(("python", CompetencyType.TECH_TOOL)) == 1
    assert ("python", CompetencyType.SKILL) in keys


async def test_cancellation_stops_processing(orchestrator, fake_llm, fake_embeddings):
    """Test that closing the stream stops further resolution."""
    fake_llm.output = make_output(*[make_item(f"Skill {i}") for i in range(1, 8)])

    stream = orchestrator.extract(ExtractionRequest(content=CONTENT))
    async for event in stream:
        if event.message == "Processing 2/7: Skill 2":
            break
    await stream.aclose()

    assert fake_embeddings.calls == ["Skill 1"]
