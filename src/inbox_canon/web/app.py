"""FastAPI service exposing rendering, grouping and attachment download."""

from __future__ import annotations

import logging
import re
from urllib.parse import quote
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query, status as http_status
from fastapi.middleware.gzip import GZipMiddleware
from pydantic import BaseModel, Field
from starlette.responses import Response

from inbox_canon.core import AppSettings, build_container, load_app_settings
from inbox_canon.core.interfaces import (
    AttachmentContentFetcher,
    HtmlSanitizer,
    RawMessageFetcher,
)
from inbox_canon.core.models import AttachmentRef
from inbox_canon.ingestion import (
    AttachmentDecodeError,
    AttachmentFetchError,
    LazyAttachmentLoader,
    MessagePipeline,
    MessageStandardizer,
)
from inbox_canon.ingestion.attachment_data import decode

LOGGER = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r'[^\x20-\x7e]|["\\]')


class RenderRequest(BaseModel):
    """A single source record to standardize and render."""

    record: dict[str, Any] = Field(default_factory=dict)
    source: str = Field(default="local", description="Source tag of the record")


class LoadRequest(BaseModel):
    """A batch of source records for one load cycle."""

    records: list[dict[str, Any]] = Field(default_factory=list)
    source: str = Field(default="local", description="Source tag of the records")


def create_app(
    settings: AppSettings | None = None,
    *,
    sanitizer: HtmlSanitizer | None = None,
    fetch_raw_message: RawMessageFetcher | None = None,
    attachment_fetcher: AttachmentContentFetcher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings()
    container = build_container(
        app_settings,
        sanitizer=sanitizer,
        fetch_raw_message=fetch_raw_message,
        attachment_fetcher=attachment_fetcher,
    )
    app = FastAPI(title="Inbox Canon")

    # Add GZip compression middleware (compress responses > 1KB)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/messages/render")
    async def render_message(request: RenderRequest) -> dict[str, Any]:
        """Standardize one record and return its renderings."""
        standardizer: MessageStandardizer = container.resolve("standardizer")
        pipeline: MessagePipeline = container.resolve("pipeline")
        message = standardizer.standardize(request.record, request.source)
        rendered = pipeline.render(message)
        return {"message": message.to_dict(), "rendered": rendered.to_dict()}

    @app.post("/api/conversations")
    async def load_conversations(
        request: LoadRequest,
        authorization: str | None = Header(default=None),
    ) -> dict[str, Any]:
        """Run a load cycle and return messages grouped into conversations."""
        pipeline: MessagePipeline = container.resolve("pipeline")
        result = await pipeline.load(
            request.records, request.source, _bearer_token(authorization)
        )
        return {
            "messages": [message.to_dict() for message in result.messages],
            "conversations": [
                conversation.to_dict() for conversation in result.conversations.values()
            ],
            "rendered": {
                key: rendered.to_dict() for key, rendered in result.rendered.items()
            },
        }

    @app.get("/api/attachments/{message_id}/{attachment_id}")
    async def download_attachment(
        message_id: str,
        attachment_id: str,
        filename: str = Query(default="attachment"),
        content_type: str = Query(default="application/octet-stream", alias="contentType"),
        authorization: str | None = Header(default=None),
    ) -> Response:
        """Fetch attachment bytes on demand, serving repeats from the cache."""
        loader: LazyAttachmentLoader | None = container.try_resolve("attachment_loader")
        if loader is None:
            raise HTTPException(
                status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Attachment fetching is not configured",
            )
        attachment = AttachmentRef(
            filename=filename,
            content_type=content_type,
            size=0,
            attachment_id=attachment_id,
            message_id=message_id,
        )
        try:
            await loader.load(attachment, _bearer_token(authorization))
            decoded = decode(attachment)
        except AttachmentFetchError as exc:
            raise HTTPException(
                status_code=http_status.HTTP_502_BAD_GATEWAY, detail=exc.notification
            ) from exc
        except AttachmentDecodeError as exc:
            LOGGER.warning("Attachment %s could not be decoded: %s", attachment_id, exc)
            raise HTTPException(
                status_code=http_status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Unable to preview/download {filename}: {exc}",
            ) from exc

        return Response(
            content=decoded.data,
            media_type=content_type,
            headers={"Content-Disposition": content_disposition(filename)},
        )

    return app


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return authorization.strip()


def content_disposition(filename: str) -> str:
    """Build an inline disposition header that survives non-ASCII names."""
    fallback = _UNSAFE_FILENAME.sub("_", filename) or "attachment"
    header = f'inline; filename="{fallback}"'
    if fallback != filename:
        header += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return header


__all__ = ["content_disposition", "create_app"]
