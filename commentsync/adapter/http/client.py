"""HTTP comment store client.

Binds the CommentStore contract to a JSON API:

    GET    /contents/{content_id}/comments?page=&page_size=
    GET    /comments/{parent_id}/replies?page=&page_size=
    POST   /contents/{content_id}/comments      {"text", "parent_id"}
    PATCH  /comments/{comment_id}               {"text"}
    DELETE /comments/{comment_id}
    POST   /comments/{comment_id}/like
    POST   /comments/{comment_id}/reports       {"reason"}
"""

from typing import Any, Optional

import httpx
import logfire
from pydantic import ValidationError as PydanticValidationError

from commentsync.adapter.error import StoreResponseError
from commentsync.domain.error import (
    NotAuthorizedError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from commentsync.domain.model.comment import Comment
from commentsync.domain.model.page import CommentPage, LikeState
from commentsync.domain.repository.comment_store import CommentStore
from commentsync.domain.value import CommentId, ContentId, ReportReason

TRANSIENT_STATUSES = {408, 425, 429}


class HttpCommentStore(CommentStore):
    """Comment store reached over HTTP with httpx."""

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP comment store.

        Args:
            base_url: Base URL of the comment API
            api_token: Bearer token of the viewer (None for anonymous reads)
            timeout: Per-request timeout in seconds
            client: Client to use instead of an owned one
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        resource_id: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and translate failures into domain errors.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            action: Operation name used in error messages
            resource_id: ID of the comment or content item addressed

        Returns:
            Successful response
        """
        try:
            response = await self._client.request(
                method,
                path,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            logfire.error(
                "Comment store unreachable",
                method=method,
                path=path,
                error=str(e),
            )
            raise TransientError(f"{action} failed: {e}") from e

        if response.is_success:
            return response

        detail = _detail(response)
        status = response.status_code
        logfire.warn(
            "Comment store rejected request",
            method=method,
            path=path,
            status_code=status,
            detail=detail,
        )
        if status in (400, 422):
            raise ValidationError(detail or f"{action} rejected")
        if status in (401, 403):
            raise NotAuthorizedError(action, resource_id, detail)
        if status == 404:
            raise NotFoundError("comment", resource_id)
        if status in TRANSIENT_STATUSES or status >= 500:
            raise TransientError(f"{action} failed: {status} {detail or ''}".strip())
        raise TransientError(f"{action} failed with unexpected status {status}")

    async def list_comments(
        self, content_id: ContentId, page: int, page_size: int
    ) -> CommentPage:
        response = await self._request(
            "GET",
            f"/contents/{content_id}/comments",
            "list",
            str(content_id),
            params={"page": page, "page_size": page_size},
        )
        return _parse(CommentPage, response)

    async def list_replies(
        self, parent_id: CommentId, page: int, page_size: int
    ) -> CommentPage:
        response = await self._request(
            "GET",
            f"/comments/{parent_id}/replies",
            "list replies of",
            str(parent_id),
            params={"page": page, "page_size": page_size},
        )
        return _parse(CommentPage, response)

    async def create_comment(
        self,
        content_id: ContentId,
        text: str,
        parent_id: Optional[CommentId] = None,
    ) -> Comment:
        response = await self._request(
            "POST",
            f"/contents/{content_id}/comments",
            "create",
            # A missing parent is the not-found a reply can hit.
            str(parent_id) if parent_id else str(content_id),
            json={"text": text, "parent_id": str(parent_id) if parent_id else None},
        )
        return _parse(Comment, response)

    async def edit_comment(self, comment_id: CommentId, text: str) -> Comment:
        response = await self._request(
            "PATCH",
            f"/comments/{comment_id}",
            "edit",
            str(comment_id),
            json={"text": text},
        )
        return _parse(Comment, response)

    async def delete_comment(self, comment_id: CommentId) -> None:
        await self._request(
            "DELETE", f"/comments/{comment_id}", "delete", str(comment_id)
        )

    async def toggle_like(self, comment_id: CommentId) -> LikeState:
        response = await self._request(
            "POST", f"/comments/{comment_id}/like", "like", str(comment_id)
        )
        return _parse(LikeState, response)

    async def report_comment(
        self, comment_id: CommentId, reason: ReportReason
    ) -> None:
        await self._request(
            "POST",
            f"/comments/{comment_id}/reports",
            "report",
            str(comment_id),
            json={"reason": reason.value},
        )


def _detail(response: httpx.Response) -> str | None:
    """Error detail from a JSON body ({"detail": ...}) or the raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return None


def _parse(model, response: httpx.Response):
    try:
        return model.model_validate(response.json())
    except (ValueError, PydanticValidationError) as e:
        raise StoreResponseError(
            f"Unexpected {model.__name__} payload from {response.request.url}"
        ) from e
