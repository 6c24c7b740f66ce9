"""
Reconciliation State Machine

Holds the reviewer's decisions for one extraction result set. Every candidate
gets a stable key when the result arrives ("cand-0", "cand-1", ...) and one
item with:

- selected_option_id: the candidate itself (default) or a similar competency
- draft: editable name/type/description, used only while the candidate itself
  is selected and it is provisional
- proficiency: defaults to the model's suggestion, editable
- action: pending -> adding -> added | pending (on error), pending <-> ignored

All transitions go through ReconciliationSession; `added` is final.
Re-running extraction means building a new session.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from app.models.api_responses import ExtractionEvent, ExtractionEventType
from app.models.competency import (
    Candidate,
    CommitRequest,
    CompetencyDraft,
    CompetencyOption,
    CompetencyType,
    Proficiency,
    ResolveRequest,
    is_provisional_id,
    supports_proficiency,
)
from app.services.catalog import CompetencyConflictError, LinkConflictError
from app.services.commit import DraftValidationError

logger = logging.getLogger(__name__)

CommitFn = Callable[[CommitRequest], Awaitable[Any]]
ResolveFn = Callable[[ResolveRequest], Awaitable[Candidate]]

EDITABLE_DRAFT_FIELDS = ("name", "type", "description")


class ItemAction(str, Enum):
    """Lifecycle of one reconciliation item."""

    PENDING = "pending"
    ADDING = "adding"
    ADDED = "added"
    IGNORED = "ignored"


class InvalidTransitionError(Exception):
    """Raised when an operation is not allowed in the item's current state."""

    pass


@dataclass
class ReconciliationItem:
    key: str
    candidate: Candidate
    selected_option_id: str
    draft: CompetencyDraft
    proficiency: Optional[Proficiency] = None
    action: ItemAction = ItemAction.PENDING
    error: Optional[str] = None
    needs_reresolve: bool = False
    committed_competency_id: Optional[str] = None

    def options(self) -> List[CompetencyOption]:
        return self.candidate.options()

    @property
    def selected_option(self) -> CompetencyOption:
        for option in self.options():
            if option.id == self.selected_option_id:
                return option
        # selected id always comes from options(); fall back to the primary
        return self.options()[0]

    @property
    def is_draft_selected(self) -> bool:
        """True while the provisional candidate itself is the selected option."""
        return (
            self.selected_option_id == self.candidate.id
            and is_provisional_id(self.candidate.id)
        )

    @property
    def effective_type(self) -> CompetencyType:
        """Type the candidate would be committed with."""
        if self.is_draft_selected:
            return self.draft.type
        return self.selected_option.type


def _draft_from(candidate: Candidate) -> CompetencyDraft:
    return CompetencyDraft(
        name=candidate.name, type=candidate.type, description=candidate.description
    )


def _default_proficiency(candidate: Candidate) -> Optional[Proficiency]:
    if candidate.suggested_proficiency and supports_proficiency(candidate.type):
        return candidate.suggested_proficiency
    return None


class ReconciliationSession:
    """
    Reviewer state for one extraction result set.
    """

    def __init__(
        self,
        candidates: Iterable[Candidate],
        existing_competency_ids: Iterable[str] = (),
        commit_fn: Optional[CommitFn] = None,
        resolve_fn: Optional[ResolveFn] = None,
        entity_name: Optional[str] = None,
    ):
        """
        Args:
            candidates: Resolved candidates, in result order
            existing_competency_ids: Competencies already linked to the entity
            commit_fn: Async callable committing one CommitRequest; its result
                       must expose `competency_id`
            resolve_fn: Optional async callable re-resolving one candidate
                        after a name conflict
            entity_name: Name of the person/course, for display
        """
        self.entity_name = entity_name
        self.existing_competency_ids: Set[str] = set(existing_competency_ids)
        self.commit_fn = commit_fn
        self.resolve_fn = resolve_fn

        self._items: Dict[str, ReconciliationItem] = {}
        for index, candidate in enumerate(candidates):
            key = f"cand-{index}"
            self._items[key] = ReconciliationItem(
                key=key,
                candidate=candidate,
                selected_option_id=candidate.id,
                draft=_draft_from(candidate),
                proficiency=_default_proficiency(candidate),
            )

    @classmethod
    def from_event(
        cls,
        event: ExtractionEvent,
        existing_competency_ids: Iterable[str] = (),
        commit_fn: Optional[CommitFn] = None,
        resolve_fn: Optional[ResolveFn] = None,
    ) -> "ReconciliationSession":
        if event.type != ExtractionEventType.RESULT:
            raise ValueError("A reconciliation session needs a result event")
        return cls(
            event.extracted_competencies or [],
            existing_competency_ids=existing_competency_ids,
            commit_fn=commit_fn,
            resolve_fn=resolve_fn,
            entity_name=event.entity_name,
        )

    # --- queries -----------------------------------------------------------

    def items(self) -> List[ReconciliationItem]:
        return list(self._items.values())

    def get(self, key: str) -> ReconciliationItem:
        try:
            return self._items[key]
        except KeyError:
            raise KeyError(f"Unknown candidate: {key}") from None

    def is_option_selectable(self, key: str, option_id: str) -> bool:
        """Already-linked competencies cannot be picked."""
        item = self.get(key)
        return (
            option_id not in self.existing_competency_ids
            and any(option.id == option_id for option in item.options())
        )

    def is_already_added(self, key: str) -> bool:
        item = self.get(key)
        return (
            item.action == ItemAction.ADDED
            or item.selected_option_id in self.existing_competency_ids
        )

    def visible_items(self, show_ignored: bool = False) -> List[ReconciliationItem]:
        return [
            item
            for item in self._items.values()
            if show_ignored or item.action != ItemAction.IGNORED
        ]

    def summary(self) -> Dict[str, int]:
        counts = {action.value: 0 for action in ItemAction}
        for item in self._items.values():
            counts[item.action.value] += 1
        counts["total"] = len(self._items)
        return counts

    # --- transitions -------------------------------------------------------

    def _require_pending(self, item: ReconciliationItem, operation: str) -> None:
        if item.action != ItemAction.PENDING:
            raise InvalidTransitionError(
                f"Cannot {operation} {item.key}: candidate is {item.action.value}"
            )

    def select_option(self, key: str, option_id: str) -> ReconciliationItem:
        item = self.get(key)
        self._require_pending(item, "change the selection of")

        if not any(option.id == option_id for option in item.options()):
            raise InvalidTransitionError(f"{option_id} is not an option of {key}")
        if option_id in self.existing_competency_ids:
            raise InvalidTransitionError(f"{option_id} is already added to this entity")

        item.selected_option_id = option_id
        item.error = None
        # proficiency stays on the item; build_request drops it for unsupported types
        return item

    def edit_draft(self, key: str, field_name: str, value: Any) -> ReconciliationItem:
        item = self.get(key)
        self._require_pending(item, "edit")

        if not item.is_draft_selected:
            raise InvalidTransitionError(
                f"Cannot edit {key}: an existing competency is selected"
            )
        if field_name not in EDITABLE_DRAFT_FIELDS:
            raise DraftValidationError(f"Unknown draft field: {field_name}")

        if field_name == "type":
            try:
                value = CompetencyType(value)
            except ValueError:
                raise DraftValidationError(f"Invalid competency type: {value}") from None
        elif field_name == "name":
            value = (value or "").strip()
        elif field_name == "description":
            value = value or None

        item.draft = item.draft.model_copy(update={field_name: value})
        item.error = None

        if field_name == "type" and not supports_proficiency(value):
            item.proficiency = None
        return item

    def set_proficiency(
        self, key: str, value: Optional[Proficiency]
    ) -> ReconciliationItem:
        item = self.get(key)
        self._require_pending(item, "set the proficiency of")

        if value is not None:
            value = Proficiency(value)
            if not supports_proficiency(item.effective_type):
                raise DraftValidationError(
                    f"Proficiency is not supported for {item.effective_type.value} competencies"
                )

        item.proficiency = value
        return item

    def ignore(self, key: str) -> ReconciliationItem:
        item = self.get(key)
        self._require_pending(item, "ignore")
        item.action = ItemAction.IGNORED
        return item

    def unignore(self, key: str) -> ReconciliationItem:
        item = self.get(key)
        if item.action != ItemAction.IGNORED:
            raise InvalidTransitionError(f"Cannot re-show {key}: candidate is {item.action.value}")
        item.action = ItemAction.PENDING
        return item

    def build_request(self, key: str) -> CommitRequest:
        """
        Commit request for the current selection.

        Raises:
            DraftValidationError: Provisional draft without a name
        """
        item = self.get(key)
        proficiency = item.proficiency
        if proficiency is not None and not supports_proficiency(item.effective_type):
            proficiency = None

        if item.is_draft_selected:
            if not item.draft.name:
                raise DraftValidationError("A name is required to create a new competency")
            return CommitRequest(
                candidate_id=key,
                selected_option_id=item.selected_option_id,
                draft=item.draft,
                proficiency=proficiency,
            )

        return CommitRequest(
            candidate_id=key,
            selected_option_id=item.selected_option_id,
            proficiency=proficiency,
        )

    async def commit(self, key: str) -> ReconciliationItem:
        """
        Commit one candidate through `commit_fn`.

        Errors are recorded on the item (never swallowed silently) and the
        item returns to pending, except for a duplicate link which counts as
        added.
        """
        item = self.get(key)
        self._require_pending(item, "commit")
        if self.is_already_added(key):
            raise InvalidTransitionError(f"Cannot commit {key}: already added")
        if self.commit_fn is None:
            raise InvalidTransitionError("No commit function configured")

        try:
            request = self.build_request(key)
        except DraftValidationError as e:
            item.error = str(e)
            return item

        item.action = ItemAction.ADDING
        item.error = None

        try:
            result = await self.commit_fn(request)
        except LinkConflictError as e:
            logger.info(f"{key} already linked as {e.competency_id}")
            self._mark_added(item, e.competency_id or request.selected_option_id)
            return item
        except CompetencyConflictError as e:
            item.action = ItemAction.PENDING
            item.needs_reresolve = True
            item.error = str(e)
            if self.resolve_fn is not None:
                await self.reresolve(key)
            return item
        except Exception as e:
            logger.warning(f"Commit of {key} failed: {e}")
            item.action = ItemAction.PENDING
            item.error = str(e) or e.__class__.__name__

            # The competency was created but the link failed: retry links only
            created_id = getattr(e, "competency_id", None)
            if created_id and created_id != item.candidate.id:
                item.candidate = item.candidate.model_copy(
                    update={"id": created_id, "similar": []}
                )
                item.selected_option_id = created_id
            return item

        self._mark_added(item, result.competency_id)
        return item

    def _mark_added(self, item: ReconciliationItem, competency_id: str) -> None:
        item.action = ItemAction.ADDED
        item.error = None
        item.needs_reresolve = False
        item.committed_competency_id = competency_id
        self.existing_competency_ids.add(competency_id)

    async def reresolve(self, key: str) -> ReconciliationItem:
        """
        Resolve the candidate again from its current draft.

        Used after a name conflict: the competency that won the race is now
        found as an exact match.
        """
        item = self.get(key)
        self._require_pending(item, "re-resolve")
        if self.resolve_fn is None:
            raise InvalidTransitionError("No resolve function configured")

        request = ResolveRequest(
            name=item.draft.name,
            type=item.draft.type,
            description=item.draft.description,
            suggested_proficiency=item.candidate.suggested_proficiency,
        )
        try:
            candidate = await self.resolve_fn(request)
        except Exception as e:
            logger.warning(f"Re-resolving {key} failed: {e}")
            item.error = f"Could not re-check this competency: {e}"
            return item

        item.candidate = candidate
        item.selected_option_id = candidate.id
        item.draft = _draft_from(candidate)
        item.needs_reresolve = False
        if item.proficiency is not None and not supports_proficiency(candidate.type):
            item.proficiency = None

        if candidate.id in self.existing_competency_ids:
            item.error = "This competency is already added"
        else:
            item.error = "A matching competency already exists; it is now selected"
        return item
