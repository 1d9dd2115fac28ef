from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from fastapi import Request
from google.cloud.firestore import AsyncClient

from .config import Settings
from .db import close_firestore, init_firestore
from .emails.templates import EmailDocument
from .errors import ServiceUnavailable
from .services.mailer import SMTPMailer
from .services.media import CloudinaryImageStore, UploadedImage

log = logging.getLogger("app.context")


class Mailer(Protocol):
    @property
    def enabled(self) -> bool: ...

    async def send(self, *, to: str, doc: EmailDocument) -> None: ...


class ImageStore(Protocol):
    @property
    def configured(self) -> bool: ...

    async def upload_profile_image(self, *, user_id: str, data: bytes) -> UploadedImage: ...


@dataclass
class AppContext:
    """Collaborator handles shared by every request for the life of the process."""

    settings: Settings
    db: Optional[AsyncClient]
    mailer: Mailer
    media: ImageStore
    firebase_app: Any = field(default=None, repr=False)

    def require_db(self) -> AsyncClient:
        if self.db is None:
            raise ServiceUnavailable("Firebase not initialized")
        return self.db


async def build_context(settings: Settings) -> AppContext:
    fb_app, db = init_firestore(settings)
    mailer = SMTPMailer(settings)
    await mailer.verify()
    return AppContext(
        settings=settings,
        db=db,
        mailer=mailer,
        media=CloudinaryImageStore(settings),
        firebase_app=fb_app,
    )


def close_context(ctx: AppContext) -> None:
    close_firestore(ctx.firebase_app)
    ctx.db = None
    log.info("context_closed")


def get_context(request: Request) -> AppContext:
    return request.app.state.context
