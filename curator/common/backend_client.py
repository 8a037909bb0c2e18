"""
Backend Client for the remote content library

Thin async HTTP client over the library's two API surfaces: the modern
structured surface (/api/mcp/v2/...) and the legacy flat surface
(/api/mcp/...). Every request carries the bearer token.

Error model:
- 401 -> AuthError (fatal for the session, never retried)
- other non-2xx, transport failures, timeouts -> BackendError
- mutating calls in read-only mode -> ReadOnlyError, before any I/O

The underlying httpx.AsyncClient is created lazily on first use and the
token is validated once (GET /api/user). Initialization is guarded by an
asyncio.Lock so concurrent first calls share one client.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .normalizer import (
    normalize_content,
    normalize_content_list,
    normalize_search_results,
    unwrap_list,
)
from .schemas.content import Content, SearchResult

logger = logging.getLogger("curator.common.backend_client")

MAX_BATCH_IDS = 50


class BackendError(Exception):
    """Error communicating with the content library."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthError(BackendError):
    """Access token missing, invalid or expired."""
    pass


class ReadOnlyError(BackendError):
    """A mutating operation was attempted in read-only mode."""
    pass


@dataclass
class BatchFetch:
    """Result of one batch fetch"""
    items: List[Content] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)  # [{"id", "error"}]
    found: int = 0


def extract_error_message(response: httpx.Response, default: str) -> str:
    """
    Build a readable error from a failed response.

    Prefers the body's `message`, then `error`, prefixed with `[code]`
    when present. Undecodable bodies fall back to "<default> (HTTP <status>)".
    """
    try:
        data = response.json()
    except ValueError:
        return f"{default} (HTTP {response.status_code})"
    if not isinstance(data, dict):
        return f"{default} (HTTP {response.status_code})"

    message = data.get("message") or data.get("error")
    if isinstance(message, dict):
        message = message.get("message")
    message = str(message) if message else f"{default} (HTTP {response.status_code})"
    if data.get("code"):
        message = f"[{data['code']}] {message}"
    return message


class BackendClient:
    """
    Async client for the content library API.

    Usage:
        client = BackendClient(api_url="https://www.noverload.com", access_token="...")
        items = await client.list_content(limit=5)
        await client.close()

    Tests inject an httpx transport (e.g. httpx.MockTransport) instead of
    touching the network.
    """

    def __init__(
        self,
        api_url: str,
        access_token: str,
        read_only: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize backend client.

        Args:
            api_url: Base URL of the library (no trailing slash needed)
            access_token: Bearer token sent on every request
            read_only: Reject mutating operations locally
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport override
        """
        self.api_url = api_url.rstrip("/")
        self.access_token = access_token
        self.read_only = read_only
        self.timeout = timeout
        self._transport = transport

        self._http: Optional[httpx.AsyncClient] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> httpx.AsyncClient:
        """
        Create the HTTP client and validate the token, once.

        Raises:
            AuthError: token missing, invalid or expired
            BackendError: the library could not be reached
        """
        if self._initialized:
            return self._http

        async with self._init_lock:
            if self._initialized:
                return self._http

            if not self.access_token:
                raise AuthError("Access token is required. Set NOVERLOAD_ACCESS_TOKEN.")

            http = httpx.AsyncClient(
                base_url=self.api_url,
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
            try:
                response = await http.get("/api/user")
            except httpx.HTTPError as e:
                await http.aclose()
                raise BackendError(f"Content library unreachable: {e}") from e

            if response.status_code == 401:
                await http.aclose()
                raise AuthError(
                    "Access token is invalid or expired. Please generate a new token "
                    "from your library account settings.",
                    status_code=401,
                )
            if not response.is_success:
                await http.aclose()
                raise BackendError(
                    f"Invalid access token or API unavailable: {response.status_code} - {response.text}",
                    status_code=response.status_code,
                )

            self._http = http
            self._initialized = True
            logger.info("Connected to content library at %s", self.api_url)
            return http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            self._initialized = False

    def _ensure_writable(self, action: str) -> None:
        if self.read_only:
            raise ReadOnlyError(f"Cannot {action} in read-only mode")

    async def _request(
        self,
        method: str,
        path: str,
        default_error: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """
        Send one request and decode its JSON body.

        Raises:
            AuthError: on 401
            BackendError: on any other failure, including timeouts
        """
        http = await self.initialize()
        try:
            response = await http.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            raise BackendError(f"{default_error}: {type(e).__name__}: {e}") from e

        if response.status_code == 401:
            raise AuthError(extract_error_message(response, "Access token is invalid or expired"), status_code=401)
        if not response.is_success:
            raise BackendError(extract_error_message(response, default_error), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{default_error}: response was not valid JSON", status_code=response.status_code) from e

    # ------------------------------------------------------------------ #
    # Content
    # ------------------------------------------------------------------ #

    async def list_content(
        self,
        status: Optional[str] = None,
        content_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Content]:
        """List saved content, most recent first."""
        params = {}
        if status:
            params["status"] = status
        if content_type:
            params["type"] = content_type
        if limit:
            params["limit"] = limit

        data = await self._request("GET", "/api/mcp/v2/content", "Failed to fetch content list", params=params)
        return normalize_content_list(data, keys=("contents", "results"))

    async def get_content(self, content_id: str) -> Content:
        """Fetch one item with its full text."""
        data = await self._request(
            "GET", "/api/mcp/v2/content", f"Failed to get content with ID: {content_id}",
            params={"id": content_id},
        )
        if isinstance(data, dict) and isinstance(data.get("content"), dict):
            data = data["content"]
        return normalize_content(data)

    async def batch_get_content(self, content_ids: List[str], include_content: bool = False) -> BatchFetch:
        """
        Fetch up to 50 items in one request.

        Entries the library reports as failed ({"id", "error"}) are kept
        apart from the normalized items.

        Args:
            content_ids: 1..50 content IDs
            include_content: Also return full text (expensive)

        Returns:
            BatchFetch with items, per-ID errors and the found count
        """
        if not content_ids or len(content_ids) > MAX_BATCH_IDS:
            raise ValueError(f"content_ids must contain between 1 and {MAX_BATCH_IDS} items")

        data = await self._request(
            "POST", "/api/mcp/v2/content", "Failed to batch fetch content",
            json={
                "operation": "get",
                "contentIds": content_ids,
                "enrich": {"includeContent": include_content},
            },
        )
        entries = unwrap_list(data, keys=("results", "contents"))
        errors = [
            {"id": str(e.get("id", "")), "error": str(e["error"])}
            for e in entries if isinstance(e, dict) and e.get("error")
        ]
        items = [
            normalize_content(e) for e in entries
            if not (isinstance(e, dict) and e.get("error"))
        ]

        found = len(items)
        if isinstance(data, dict) and isinstance(data.get("metadata"), dict):
            reported = data["metadata"].get("found")
            if reported is not None and reported != found:
                logger.warning("Batch metadata reports %s found, %d items returned", reported, found)
        if found < len(content_ids):
            logger.info("Batch fetch returned %d of %d requested items", found, len(content_ids))
        return BatchFetch(items=items, errors=errors, found=found)

    async def save_content(self, url: str) -> Content:
        """Submit a URL for processing."""
        self._ensure_writable("save content")
        data = await self._request(
            "POST", "/api/mcp/content", f"Failed to save content from URL: {url}",
            json={"url": url},
        )
        if isinstance(data, dict) and isinstance(data.get("content"), dict):
            data = data["content"]
        return normalize_content(data)

    async def find_similar_content(
        self,
        content_id: str,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> List[SearchResult]:
        params = {}
        if limit:
            params["limit"] = limit
        if min_similarity:
            params["minSimilarity"] = min_similarity

        data = await self._request(
            "GET", f"/api/mcp/content/{content_id}/similar",
            f"Failed to find similar content for ID: {content_id}", params=params,
        )
        return normalize_search_results(data, keys=("similar", "results", "contents"))

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    async def search_v2(self, body: Dict[str, Any]) -> Any:
        """Structured search on the modern surface. Returns the raw body."""
        return await self._request("POST", "/api/mcp/v2/search", "Search request failed", json=body)

    async def search_legacy(self, params: Dict[str, Any]) -> Any:
        """Query-string search on the legacy surface. Returns the raw body."""
        return await self._request("GET", "/api/mcp/search", "Legacy search request failed", params=params)

    async def estimate_search_tokens(self, query: str, limit: int = 10) -> Dict[str, Any]:
        """Ask the library how many tokens a search would return, without running it."""
        data = await self._request(
            "POST", "/api/mcp/v2/search", "Failed to estimate search tokens",
            json={"query": query, "options": {"limit": limit}, "features": {"estimateOnly": True}},
        )
        if isinstance(data, dict) and isinstance(data.get("estimate"), dict):
            return data["estimate"]
        return data if isinstance(data, dict) else {"estimate": data}

    # ------------------------------------------------------------------ #
    # Synthesis
    # ------------------------------------------------------------------ #

    async def synthesize_v2(self, body: Dict[str, Any]) -> Any:
        return await self._request("POST", "/api/mcp/v2/synthesis", "Synthesis request failed", json=body)

    async def synthesize_legacy(self, body: Dict[str, Any]) -> Any:
        return await self._request("POST", "/api/mcp/synthesis", "Legacy synthesis request failed", json=body)

    # ------------------------------------------------------------------ #
    # Tags
    # ------------------------------------------------------------------ #

    async def list_tags(self) -> Dict[str, Any]:
        """All tags, with {tags, grouped: {system, custom}, total}."""
        data = await self._request("GET", "/api/mcp/tags", "Failed to list tags")
        tags = unwrap_list(data, keys=("tags",))
        result = {"tags": tags, "total": len(tags)}
        if isinstance(data, dict):
            result["total"] = data.get("total", len(tags))
            if isinstance(data.get("grouped"), dict):
                result["grouped"] = data["grouped"]
        return result

    async def create_tag(self, name: str) -> Dict[str, Any]:
        self._ensure_writable("create tag")
        return await self._request("POST", "/api/mcp/tags", f"Failed to create tag: {name}", json={"name": name})

    async def add_tags(self, content_id: str, tags: List[str]) -> Dict[str, Any]:
        self._ensure_writable("add tags")
        return await self._request(
            "POST", f"/api/mcp/content/{content_id}/tags", "Failed to add tags", json={"tags": tags},
        )

    async def remove_tags(self, content_id: str, tags: List[str]) -> Dict[str, Any]:
        self._ensure_writable("remove tags")
        return await self._request(
            "DELETE", f"/api/mcp/content/{content_id}/tags", "Failed to remove tags", json={"tags": tags},
        )

    async def get_content_tags(self, content_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/api/mcp/content/{content_id}/tags", "Failed to get content tags")
        return unwrap_list(data, keys=("tags",))

    # ------------------------------------------------------------------ #
    # Swipe file
    # ------------------------------------------------------------------ #

    async def mark_swipe_file(self, content_id: str) -> Dict[str, Any]:
        self._ensure_writable("mark as swipe file")
        return await self._request(
            "POST", f"/api/mcp/content/{content_id}/swipe-file", "Failed to mark as swipe file",
        )

    async def unmark_swipe_file(self, content_id: str) -> Dict[str, Any]:
        self._ensure_writable("unmark swipe file")
        return await self._request(
            "DELETE", f"/api/mcp/content/{content_id}/swipe-file", "Failed to unmark swipe file",
        )

    async def get_swipe_file_status(self, content_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/api/mcp/content/{content_id}/swipe-file", "Failed to get swipe file status",
        )


def create_backend_client(config=None, transport: Optional[httpx.AsyncBaseTransport] = None) -> BackendClient:
    """
    Factory function to create a BackendClient from Curator configuration.

    Args:
        config: CuratorConfig (loaded via load_config() when omitted)
        transport: Optional httpx transport override

    Returns:
        BackendClient (not yet initialized; the first call validates the token)
    """
    if config is None:
        from .config import load_config
        config = load_config()

    return BackendClient(
        api_url=config.backend.api_url,
        access_token=config.backend.access_token,
        read_only=config.server.read_only,
        timeout=config.backend.timeout,
        transport=transport,
    )
