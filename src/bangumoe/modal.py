"""Dialog state machines for the collection editor and the auth dialog."""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .base_client import RemoteClient
from .errors import ServiceError, StateError, ValidationError
from .models import AuthDraft, AuthResult, CollectionDraft, CollectionEntry, CollectionType
from .store import CollectionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModalState(str, Enum):
    """Lifecycle of a dialog."""

    CLOSED = "closed"
    OPEN = "open"
    SUBMITTING = "submitting"


class EditorMode(str, Enum):
    CREATE = "create"
    EDIT = "edit"


class AuthMode(str, Enum):
    LOGIN = "login"
    REGISTER = "register"


class Dialog:
    """Shared closed -> open -> submitting state machine.

    Validation runs before anything is sent. A validation failure or a
    backend failure puts the dialog back to ``open`` with the draft intact;
    success closes it.
    """

    name = "dialog"

    def __init__(self):
        self.state = ModalState.CLOSED
        self.draft: Any = None
        self.field_errors: dict[str, str] = {}
        self.error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state is ModalState.OPEN

    def _open(self, draft) -> None:
        if self.state is ModalState.SUBMITTING:
            raise StateError(f"Cannot reopen the {self.name} while it is submitting")
        self.state = ModalState.OPEN
        self.draft = draft
        self.field_errors = {}
        self.error = None

    def close(self) -> bool:
        """Close the dialog and discard the draft.

        Returns False when there was nothing to close or a submission is in
        progress (closing is ignored then).
        """
        if self.state is ModalState.OPEN:
            self.state = ModalState.CLOSED
            self.draft = None
            self.field_errors = {}
            self.error = None
            return True
        if self.state is ModalState.SUBMITTING:
            logger.debug(f"Ignoring close of {self.name} while submitting")
        return False

    def update_draft(self, **fields) -> None:
        self._require_open("edit")
        # The id of an edited entry is fixed when the dialog opens
        unknown = {f for f in fields if f == "id" or f not in type(self.draft).model_fields}
        if unknown:
            raise ValueError(f"Cannot set {', '.join(sorted(unknown))} on the {self.name} draft")
        self.draft = self.draft.model_copy(update=fields)
        for field in fields:
            self.field_errors.pop(field, None)

    def _require_open(self, operation: str) -> None:
        if self.state is not ModalState.OPEN:
            raise StateError(f"Cannot {operation} the {self.name} while it is {self.state.value}")

    async def _submit(self, validate: Callable[[], Any], perform: Callable[[Any], Awaitable[T]]) -> T:
        self._require_open("submit")
        self.state = ModalState.SUBMITTING
        self.field_errors = {}
        self.error = None

        try:
            value = validate()
        except ValidationError as e:
            self.state = ModalState.OPEN
            self.field_errors = {e.field: e.message}
            logger.info(f"{self.name} rejected: {e.field}: {e.message}")
            raise

        try:
            result = await perform(value)
        except ServiceError as e:
            self.state = ModalState.OPEN
            self.error = e.message
            raise
        except BaseException:
            self.state = ModalState.OPEN
            raise

        self.state = ModalState.CLOSED
        self.draft = None
        return result


class CollectionEditor(Dialog):
    """Create / edit dialog for collection entries.

    The draft is a copy of the entry: editing it never touches the store's
    snapshot. A successful submit reloads the store with its current filter.
    """

    name = "collection editor"

    def __init__(self, store: CollectionStore):
        super().__init__()
        self.store = store
        self.mode: Optional[EditorMode] = None
        self.refresh_error: Optional[ServiceError] = None

    def open_create(self, anime_id: Optional[int] = None) -> None:
        self._open(CollectionDraft(anime_id=anime_id, type=CollectionType.WATCHING.value))
        self.mode = EditorMode.CREATE

    def open_edit(self, entry: CollectionEntry) -> None:
        self._open(CollectionDraft.from_entry(entry))
        self.mode = EditorMode.EDIT

    def close(self) -> bool:
        closed = super().close()
        if closed:
            self.mode = None
        return closed

    async def submit(self) -> CollectionEntry:
        """Validate and save the draft, then refresh the store.

        Raises:
            ValidationError: the draft is invalid; nothing was sent
            ServiceError: the backend rejected the save; the dialog stays open
        """
        self.refresh_error = None
        saved = await self._submit(lambda: self.draft.to_entry(), self.store.upsert)
        self.mode = None
        try:
            await self.store.reload()
        except ServiceError as e:
            logger.warning(f"Saved entry {saved.id} but could not reload collections: {e}")
            self.refresh_error = e
        return saved


class AuthDialog(Dialog):
    """Login / register dialog."""

    name = "auth dialog"

    def __init__(self, client: RemoteClient):
        super().__init__()
        self.client = client
        self.mode = AuthMode.LOGIN

    def open(self, mode: AuthMode = AuthMode.LOGIN) -> None:
        self._open(AuthDraft())
        self.mode = AuthMode(mode)

    def switch_mode(self, mode: AuthMode) -> None:
        self._require_open("switch")
        self.mode = AuthMode(mode)
        self.field_errors = {}

    async def submit(self) -> AuthResult:
        return await self._submit(self._validate, self._perform)

    def _validate(self) -> AuthDraft:
        draft: AuthDraft = self.draft
        if not draft.username.strip():
            raise ValidationError("username", "Username is required")
        if self.mode is AuthMode.REGISTER and not draft.email.strip():
            raise ValidationError("email", "Email is required")
        if not draft.password:
            raise ValidationError("password", "Password is required")
        if self.mode is AuthMode.REGISTER and draft.password != draft.confirm_password:
            raise ValidationError("confirm_password", "Passwords do not match")
        return draft

    async def _perform(self, draft: AuthDraft) -> AuthResult:
        if self.mode is AuthMode.REGISTER:
            return await self.client.register(draft.username.strip(), draft.email.strip(), draft.password)
        return await self.client.authenticate(draft.username.strip(), draft.password)
