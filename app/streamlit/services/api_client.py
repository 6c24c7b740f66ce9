"""
API client for the competency backend.
Makes real HTTP calls to the FastAPI backend at app/api/routes.

Commit conflicts are raised as the same exceptions the backend uses
(LinkConflictError, CompetencyConflictError, ...) so the reconciliation
session treats local and remote commits alike.
"""

from typing import Any, Iterator
import requests
import logging

from app.models.api_responses import CommitResponse, ExtractionEvent
from app.models.competency import (
    Candidate,
    CommitRequest,
    EntityKind,
    ExtractionRequest,
    ResolveRequest,
)
from app.services.catalog import CompetencyConflictError, LinkConflictError
from app.services.commit import DraftValidationError, LinkCreationError
from app.streamlit.config.settings import API_BASE_URL, API_TIMEOUT
from app.utils import decode_ndjson_line

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when the backend cannot be reached or returns an unexpected error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def _extract_error_detail(e: requests.HTTPError) -> str:
    """Pull a human-readable detail string from an HTTPError response."""
    try:
        return e.response.json().get("detail", str(e))
    except Exception:
        return str(e)


def _api_get(endpoint: str, params: dict | None = None) -> requests.Response:
    """Make a GET request to the backend API."""
    url = f"{API_BASE_URL}{endpoint}"
    return requests.get(url, params=params, timeout=API_TIMEOUT)


def _api_post(endpoint: str, json: dict | None = None, stream: bool = False) -> requests.Response:
    """Make a POST request to the backend API."""
    url = f"{API_BASE_URL}{endpoint}"
    return requests.post(url, json=json, timeout=API_TIMEOUT, stream=stream)


def _raise_for_status(resp: requests.Response) -> None:
    try:
        resp.raise_for_status()
    except requests.HTTPError as e:
        raise ApiError(_extract_error_detail(e), status_code=resp.status_code) from e


def stream_extraction(request: ExtractionRequest) -> Iterator[ExtractionEvent]:
    """
    Run an extraction and yield its events as they arrive.

    Calls: POST /api/extraction/stream

    Yields:
        ExtractionEvent (info..., then one result or error)
    """
    try:
        resp = _api_post(
            "/api/extraction/stream",
            json=request.model_dump(mode="json"),
            stream=True,
        )
    except requests.ConnectionError as e:
        raise ApiError("Cannot connect to backend API. Is it running?") from e

    with resp:
        _raise_for_status(resp)
        terminal_seen = False
        for line in resp.iter_lines():
            data = decode_ndjson_line(line)
            if data is None:
                continue
            event = ExtractionEvent.model_validate(data)
            yield event
            if event.is_terminal:
                terminal_seen = True
                break

    if not terminal_seen:
        yield ExtractionEvent.error("Extraction stream ended unexpectedly")


def resolve_candidate(request: ResolveRequest) -> Candidate:
    """
    Re-resolve one candidate after a name conflict.

    Calls: POST /api/extraction/resolve
    """
    try:
        resp = _api_post("/api/extraction/resolve", json=request.model_dump(mode="json"))
    except requests.ConnectionError as e:
        raise ApiError("Cannot connect to backend API. Is it running?") from e
    _raise_for_status(resp)
    return Candidate.model_validate(resp.json())


def commit_candidate(
    entity_kind: EntityKind, entity_id: str, request: CommitRequest
) -> CommitResponse:
    """
    Commit one candidate to a person or course.

    Calls: POST /api/{entity_kind}/{entity_id}/competencies/commit

    Raises:
        LinkConflictError: Already added (409 already_added)
        CompetencyConflictError: Name taken meanwhile (409 name_conflict)
        DraftValidationError: Rejected draft/proficiency (422)
        LinkCreationError: Competency created but the link failed
        ApiError: Anything else
    """
    endpoint = f"/api/{EntityKind(entity_kind).value}/{entity_id}/competencies/commit"
    try:
        resp = _api_post(endpoint, json=request.model_dump(mode="json", exclude_none=True))
    except requests.ConnectionError as e:
        raise ApiError("Cannot connect to backend API. Is it running?") from e

    if resp.ok:
        return CommitResponse.model_validate(resp.json())

    try:
        body: dict[str, Any] = resp.json()
    except ValueError:
        body = {}
    detail = body.get("detail") or resp.reason or f"HTTP {resp.status_code}"
    code = body.get("code")

    if resp.status_code == 409 and code == "already_added":
        raise LinkConflictError(body.get("competency_id") or request.selected_option_id, detail)
    if resp.status_code == 409 and code == "name_conflict" and request.draft:
        raise CompetencyConflictError(request.draft.name, request.draft.type)
    if resp.status_code == 422:
        raise DraftValidationError(detail if isinstance(detail, str) else str(detail))
    if code == "link_failed" and body.get("competency_id"):
        raise LinkCreationError(body["competency_id"], detail)

    raise ApiError(f"Commit failed: {detail}", status_code=resp.status_code)


def fetch_entity_competencies(entity_kind: EntityKind, entity_id: str) -> list[dict]:
    """
    Competencies already linked to a person or course.

    Calls: GET /api/{entity_kind}/{entity_id}/competencies

    Returns:
        List of link dicts, each with a nested "competency"
    """
    try:
        resp = _api_get(f"/api/{EntityKind(entity_kind).value}/{entity_id}/competencies")
    except requests.ConnectionError as e:
        raise ApiError("Cannot connect to backend API. Is it running?") from e
    _raise_for_status(resp)
    return resp.json()


def create_entity(entity_kind: EntityKind, name: str) -> dict:
    """
    Register a person or course.

    Calls: POST /api/{entity_kind}
    """
    try:
        resp = _api_post(f"/api/{EntityKind(entity_kind).value}", json={"name": name})
    except requests.ConnectionError as e:
        raise ApiError("Cannot connect to backend API. Is it running?") from e
    _raise_for_status(resp)
    return resp.json()
