"""Application context and the intent dispatcher that drives it."""

import logging
import time
from typing import Any, Callable, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .base_client import RemoteClient
from .config import Settings
from .constants import DEFAULT_NOTIFICATION_SECONDS, Backend, Section
from .errors import ServiceError, StateError, ValidationError
from .http_client import HttpRemoteClient
from .memory_client import InMemoryRemoteClient
from .modal import AuthDialog, AuthMode, CollectionEditor, EditorMode
from .models import CollectionFilter, CollectionType, User
from .navigation import NavigationRouter
from .notifications import Notifier
from .store import CollectionStore
from .sync_coordinator import SyncCoordinator, SyncOutcome

logger = logging.getLogger(__name__)


def build_client(settings: Settings) -> RemoteClient:
    """Create the RemoteClient selected in the config."""
    if settings.backend is Backend.HTTP:
        logger.info(f"Using backend at {settings.api_base_url}")
        return HttpRemoteClient(settings.api_base_url, timeout=settings.api_timeout)
    logger.info("Using in-memory demo backend")
    return InMemoryRemoteClient(latency=settings.memory_latency)


class AppContext:
    """Owns one instance of every component; passed to whoever needs them.

    Components never reach into each other's state: cross-component effects
    go through their public operations and published snapshots.
    """

    def __init__(self, client: RemoteClient, notification_seconds: float = DEFAULT_NOTIFICATION_SECONDS,
                 start_section: Section = Section.HOME, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.notifier = Notifier(notification_seconds, clock=clock)
        self.store = CollectionStore(client)
        self.coordinator = SyncCoordinator(client)
        self.editor = CollectionEditor(self.store)
        self.auth = AuthDialog(client)
        self.router = NavigationRouter(self.store, self.coordinator, start=start_section)
        self.user: Optional[User] = None
        # One report per sync, however many callers joined it
        self.coordinator.subscribe_sync(self._report_sync)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        return cls(
            build_client(settings),
            notification_seconds=settings.notification_seconds,
            start_section=settings.start_section,
        )

    async def close(self) -> None:
        await self.client.close()

    def _report_sync(self, outcome: SyncOutcome) -> None:
        if isinstance(outcome, ServiceError):
            self.notifier.error(f"{FAILURE_MESSAGES[SyncBangumi]}: {outcome.message}")
            return
        self.notifier.success(
            f"Data sync complete: {outcome.new_animes} new anime, "
            f"{outcome.updated_collections} collections updated, "
            f"{outcome.total_collections} in total"
        )

    def view_state(self) -> dict:
        """Everything a view needs to render, as plain JSON-compatible data."""
        binding = self.coordinator.binding
        return {
            "section": self.router.active.value,
            "user": self.user.model_dump(mode="json") if self.user else None,
            "collections": {
                "entries": [e.model_dump(mode="json") for e in self.store.snapshot],
                "filter": self.store.filter.model_dump(mode="json"),
                "loaded": self.store.loaded,
                "loading": self.store.loading,
            },
            "bangumi": {
                "status": self.coordinator.status.value,
                "binding": binding.model_dump(mode="json") if binding else None,
                "syncing": self.coordinator.syncing,
            },
            "collection_modal": _dialog_state(self.editor),
            "auth_modal": _dialog_state(self.auth),
            "notifications": [n.model_dump(mode="json") for n in self.notifier.active()],
        }


def _dialog_state(dialog) -> dict:
    mode = dialog.mode.value if dialog.mode is not None else None
    return {
        "state": dialog.state.value,
        "mode": mode,
        "draft": dialog.draft.model_dump(mode="json") if dialog.draft is not None else None,
        "field_errors": dict(dialog.field_errors),
        "error": dialog.error,
    }


class Intent(BaseModel):
    """A user action, decoupled from whatever widget produced it."""

    model_config = ConfigDict(frozen=True)


class Navigate(Intent):
    section: Section


class SetFilter(Intent):
    type: Optional[CollectionType] = None
    rating: Optional[int] = None


class RefreshCollections(Intent):
    pass


class OpenCreateModal(Intent):
    anime_id: Optional[int] = None


class OpenEditModal(Intent):
    entry_id: int


class UpdateDraft(Intent):
    fields: dict[str, Any] = Field(default_factory=dict)


class SubmitCollection(Intent):
    pass


class CloseModal(Intent):
    pass


class DeleteCollection(Intent):
    entry_id: int
    confirmed: bool = False


class OpenAuthModal(Intent):
    mode: AuthMode = AuthMode.LOGIN


class SwitchAuthMode(Intent):
    mode: AuthMode


class UpdateAuthDraft(Intent):
    fields: dict[str, Any] = Field(default_factory=dict)


class SubmitAuth(Intent):
    pass


class CloseAuthModal(Intent):
    pass


class Logout(Intent):
    pass


class BindBangumi(Intent):
    pass


class UnbindBangumi(Intent):
    confirmed: bool = False


class SyncBangumi(Intent):
    pass


# Prefix of the error notification shown when an intent fails
FAILURE_MESSAGES = {
    Navigate: "Failed to load section",
    SetFilter: "Failed to load collections",
    RefreshCollections: "Failed to load collections",
    SubmitCollection: "Failed to save collection",
    DeleteCollection: "Failed to delete collection",
    SubmitAuth: "Authentication failed",
    BindBangumi: "Binding failed",
    UnbindBangumi: "Unbinding failed",
    SyncBangumi: "Data sync failed",
}

# Intents whose outcome AppContext reports itself
REPORTED_BY_CONTEXT = (SyncBangumi,)


class Dispatcher:
    """Maps intents to component operations and outcomes to notifications.

    ``ValidationError`` and ``ServiceError`` are reported as notifications
    and re-raised so callers can react; ``StateError`` is never reported,
    it means the caller offered an action it should not have.
    """

    def __init__(self, context: AppContext):
        self.context = context
        self._handlers = {
            Navigate: self._navigate,
            SetFilter: self._set_filter,
            RefreshCollections: self._refresh,
            OpenCreateModal: self._open_create,
            OpenEditModal: self._open_edit,
            UpdateDraft: self._update_draft,
            SubmitCollection: self._submit_collection,
            CloseModal: self._close_modal,
            DeleteCollection: self._delete_collection,
            OpenAuthModal: self._open_auth,
            SwitchAuthMode: self._switch_auth_mode,
            UpdateAuthDraft: self._update_auth_draft,
            SubmitAuth: self._submit_auth,
            CloseAuthModal: self._close_auth,
            Logout: self._logout,
            BindBangumi: self._bind,
            UnbindBangumi: self._unbind,
            SyncBangumi: self._sync,
        }

    async def dispatch(self, intent: Intent) -> Any:
        handler = self._handlers.get(type(intent))
        if handler is None:
            raise TypeError(f"No handler for intent {type(intent).__name__}")

        notifier = self.context.notifier
        try:
            return await handler(intent)
        except ValidationError as e:
            notifier.warning(e.message)
            raise
        except ServiceError as e:
            if type(intent) not in REPORTED_BY_CONTEXT:
                prefix = FAILURE_MESSAGES.get(type(intent), "Request failed")
                notifier.error(f"{prefix}: {e.message}")
            raise

    async def _navigate(self, intent: Navigate):
        return await self.context.router.activate(intent.section)

    async def _set_filter(self, intent: SetFilter):
        try:
            collection_filter = CollectionFilter(type=intent.type, rating=intent.rating)
        except pydantic.ValidationError as e:
            raise ValidationError("rating", "Rating filter must be between 1 and 10") from e
        return await self.context.store.load(collection_filter)

    async def _refresh(self, intent: RefreshCollections):
        return await self.context.store.reload()

    async def _open_create(self, intent: OpenCreateModal):
        self.context.editor.open_create(intent.anime_id)

    async def _open_edit(self, intent: OpenEditModal):
        entry = self.context.store.get(intent.entry_id)
        if entry is None:
            raise StateError(f"Collection entry {intent.entry_id} is not in the current list")
        self.context.editor.open_edit(entry)

    async def _update_draft(self, intent: UpdateDraft):
        self.context.editor.update_draft(**intent.fields)

    async def _submit_collection(self, intent: SubmitCollection):
        editor = self.context.editor
        creating = editor.mode is EditorMode.CREATE
        saved = await editor.submit()
        self.context.notifier.success("Collection added" if creating else "Collection updated")
        if editor.refresh_error is not None:
            self.context.notifier.error(f"Failed to load collections: {editor.refresh_error.message}")
        return saved

    async def _close_modal(self, intent: CloseModal):
        return self.context.editor.close()

    async def _delete_collection(self, intent: DeleteCollection):
        if not intent.confirmed:
            logger.debug(f"Delete of entry {intent.entry_id} not confirmed")
            return False
        await self.context.store.delete(intent.entry_id)
        self.context.notifier.success("Collection deleted")
        try:
            await self.context.store.reload()
        except ServiceError as e:
            self.context.notifier.error(f"Failed to load collections: {e.message}")
        return True

    async def _open_auth(self, intent: OpenAuthModal):
        self.context.auth.open(intent.mode)

    async def _switch_auth_mode(self, intent: SwitchAuthMode):
        self.context.auth.switch_mode(intent.mode)

    async def _update_auth_draft(self, intent: UpdateAuthDraft):
        self.context.auth.update_draft(**intent.fields)

    async def _submit_auth(self, intent: SubmitAuth):
        registering = self.context.auth.mode is AuthMode.REGISTER
        result = await self.context.auth.submit()
        self.context.user = result.user
        self.context.notifier.success("Registered" if registering else "Logged in")
        return result.user

    async def _close_auth(self, intent: CloseAuthModal):
        return self.context.auth.close()

    async def _logout(self, intent: Logout):
        # Nothing of the previous user's session may outlive it
        await self.context.client.logout()
        self.context.store.reset()
        await self.context.coordinator.reset()
        self.context.editor.close()
        self.context.auth.close()
        self.context.user = None
        self.context.notifier.info("Logged out")

    async def _bind(self, intent: BindBangumi):
        result = await self.context.coordinator.bind()
        self.context.notifier.success(result.message or "Bangumi account bound")
        return result

    async def _unbind(self, intent: UnbindBangumi):
        if not intent.confirmed:
            logger.debug("Unbind not confirmed")
            return False
        await self.context.coordinator.unbind(confirmed=True)
        self.context.notifier.success("Bangumi account unbound")
        return True

    async def _sync(self, intent: SyncBangumi):
        # Outcome notifications come from AppContext._report_sync
        return await self.context.coordinator.sync()
