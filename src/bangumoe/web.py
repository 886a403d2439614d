"""
Web control surface for Bangumoe.
Exposes the application state and the intent dispatcher as JSON endpoints.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from . import __version__
from .app import (
    AppContext,
    BindBangumi,
    CloseAuthModal,
    CloseModal,
    DeleteCollection,
    Dispatcher,
    Intent,
    Logout,
    Navigate,
    OpenAuthModal,
    OpenCreateModal,
    OpenEditModal,
    RefreshCollections,
    SetFilter,
    SubmitAuth,
    SubmitCollection,
    SwitchAuthMode,
    SyncBangumi,
    UnbindBangumi,
    UpdateAuthDraft,
    UpdateDraft,
)
from .config import Settings
from .constants import Section
from .errors import BangumoeError, ServiceError, StateError, ValidationError
from .modal import AuthMode
from .models import CollectionType

logger = logging.getLogger(__name__)


class FilterUpdate(BaseModel):
    """Collections filter request model"""
    type: Optional[CollectionType] = None
    rating: Optional[int] = None


class DraftUpdate(BaseModel):
    """Draft field changes request model"""
    fields: dict[str, Any]


class CreateRequest(BaseModel):
    """Open-create request model"""
    anime_id: Optional[int] = None


def create_app(context: AppContext, settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI app around one application context.

    When ``settings`` carry credentials, the app logs in on startup.
    """
    dispatcher = Dispatcher(context)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings is not None and settings.has_credentials:
            try:
                await dispatcher.dispatch(OpenAuthModal())
                await dispatcher.dispatch(
                    UpdateAuthDraft(fields={"username": settings.username, "password": settings.password})
                )
                await dispatcher.dispatch(SubmitAuth())
            except BangumoeError as e:
                logger.error(f"Startup login failed: {e}")
        yield
        await context.close()

    app = FastAPI(title="Bangumoe", version=__version__, lifespan=lifespan)
    app.state.context = context
    app.state.dispatcher = dispatcher

    async def run(intent: Intent) -> dict:
        try:
            await dispatcher.dispatch(intent)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail={"field": e.field, "message": e.message})
        except ServiceError as e:
            raise HTTPException(status_code=502, detail=e.message)
        except StateError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return context.view_state()

    @app.get("/api/state")
    async def get_state():
        """Current view state"""
        return context.view_state()

    @app.post("/api/navigate/{section}")
    async def navigate(section: Section):
        """Activate a section and run its initializer"""
        return await run(Navigate(section=section))

    @app.post("/api/collections/filter")
    async def set_filter(data: FilterUpdate):
        """Reload collections with a new filter"""
        return await run(SetFilter(type=data.type, rating=data.rating))

    @app.post("/api/collections/refresh")
    async def refresh_collections():
        """Reload collections with the current filter"""
        return await run(RefreshCollections())

    @app.delete("/api/collections/{entry_id}")
    async def delete_collection(entry_id: int, confirmed: bool = False):
        """Delete a collection entry (requires confirmed=true)"""
        return await run(DeleteCollection(entry_id=entry_id, confirmed=confirmed))

    @app.post("/api/modal/collection/create")
    async def open_create(data: CreateRequest):
        """Open the collection editor for a new entry"""
        return await run(OpenCreateModal(anime_id=data.anime_id))

    @app.post("/api/modal/collection/edit/{entry_id}")
    async def open_edit(entry_id: int):
        """Open the collection editor on an existing entry"""
        return await run(OpenEditModal(entry_id=entry_id))

    @app.patch("/api/modal/collection/draft")
    async def update_draft(data: DraftUpdate):
        """Change fields of the collection draft"""
        try:
            return await run(UpdateDraft(fields=data.fields))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.post("/api/modal/collection/submit")
    async def submit_collection():
        """Save the collection draft"""
        return await run(SubmitCollection())

    @app.post("/api/modal/collection/close")
    async def close_collection_modal():
        """Close the collection editor"""
        return await run(CloseModal())

    @app.post("/api/modal/auth/open")
    async def open_auth(mode: AuthMode = AuthMode.LOGIN):
        """Open the login / register dialog"""
        return await run(OpenAuthModal(mode=mode))

    @app.post("/api/modal/auth/mode/{mode}")
    async def switch_auth_mode(mode: AuthMode):
        """Switch between the login and register forms"""
        return await run(SwitchAuthMode(mode=mode))

    @app.patch("/api/modal/auth/draft")
    async def update_auth_draft(data: DraftUpdate):
        """Change fields of the auth form"""
        try:
            return await run(UpdateAuthDraft(fields=data.fields))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.post("/api/modal/auth/submit")
    async def submit_auth():
        """Log in or register"""
        return await run(SubmitAuth())

    @app.post("/api/modal/auth/close")
    async def close_auth_modal():
        """Close the login / register dialog"""
        return await run(CloseAuthModal())

    @app.post("/api/logout")
    async def logout():
        """Log out and forget the session's collections and binding"""
        return await run(Logout())

    @app.post("/api/bangumi/bind")
    async def bind():
        """Bind a Bangumi account"""
        return await run(BindBangumi())

    @app.post("/api/bangumi/unbind")
    async def unbind(confirmed: bool = False):
        """Unbind the Bangumi account (requires confirmed=true)"""
        return await run(UnbindBangumi(confirmed=confirmed))

    @app.post("/api/bangumi/sync")
    async def sync():
        """Sync the Bangumi collection"""
        return await run(SyncBangumi())

    return app
