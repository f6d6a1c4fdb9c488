"""GraphQL client for the Monday.com API."""

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import aiohttp

from followup_bot.config import BoardConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MUTATION_PATTERN = re.compile(r"^\s*mutation\b", re.IGNORECASE)
_RATE_LIMIT_CODES = ("RATE_LIMIT", "RATE_LIMIT_EXCEEDED", "COMPLEXITY_BUDGET_EXHAUSTED")

ITEMS_PAGE_QUERY = """
query ($boardId: [ID!], $cursor: String) {
  boards(ids: $boardId) {
    items_page(limit: 500, cursor: $cursor) {
      cursor
      items {
        id
        name
        group { id title }
        column_values { id text value }
      }
    }
  }
}
"""


class BoardError(Exception):
    """A Monday.com request failed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.errors = errors or []
        self.error_code = error_code

    def details(self) -> Dict[str, Any]:
        """Diagnostic fields for logging."""
        return {
            "status_code": self.status_code,
            "error_code": self.error_code,
            "errors": self.errors,
            "response_body": (self.response_body or "")[:2000],
        }


class BoardTransientError(BoardError):
    """Rate limiting or a server-side failure; safe to retry."""


def is_mutation(query: str) -> bool:
    return bool(_MUTATION_PATTERN.match(query))


def _is_rate_limit_error(error: Dict[str, Any]) -> bool:
    message = str(error.get("message", "")).lower()
    extensions = error.get("extensions") or {}
    code = str(extensions.get("code", "")).upper()
    return "rate limit" in message or code in _RATE_LIMIT_CODES


class RetryPolicy:
    """Bounded retry with a fixed backoff.

    Only ``BoardTransientError`` is retried. Anything else propagates on
    the first attempt.
    """

    def __init__(
        self,
        max_attempts: int = 2,
        backoff_seconds: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize policy.

        Args:
            max_attempts: Total attempts including the first.
            backoff_seconds: Delay before each retry.
            sleep: Awaitable sleep function.
        """
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    async def run(
        self, operation: Callable[[], Awaitable[T]], description: str = "request"
    ) -> T:
        """Run an operation under this policy.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt.
            description: Label used in log messages.

        Returns:
            The operation's result.

        Raises:
            BoardTransientError: When the last attempt also failed transiently.
            BoardError: Any non-transient failure, immediately.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except BoardTransientError as e:
                if attempt >= self.max_attempts:
                    logger.error(
                        f"Monday.com {description} failed after {attempt} attempts: {e}"
                    )
                    raise
                logger.warning(
                    f"Retryable Monday.com error ({e.status_code or 'GraphQL'}): {e}. "
                    f"Retrying in {self.backoff_seconds:.0f}s..."
                )
                await self._sleep(self.backoff_seconds)
                attempt += 1


class BoardClient:
    """Sends GraphQL queries and mutations to Monday.com."""

    def __init__(
        self,
        config: BoardConfig,
        session: Optional[aiohttp.ClientSession] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """Initialize client.

        Args:
            config: Board configuration (token, URL, board ids).
            session: Optional shared aiohttp session; created lazily otherwise.
            retry_policy: Retry behaviour for transient failures.
        """
        self.config = config
        self._session = session
        self._owns_session = session is None
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=2, backoff_seconds=config.retry_backoff
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
            self._owns_session = True
        return self._session

    async def execute(
        self, query: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Execute a query or mutation, retrying transient failures once.

        Args:
            query: GraphQL document.
            variables: GraphQL variables.

        Returns:
            The ``data`` object of the response.

        Raises:
            BoardError: On any failure that survived the retry policy.
        """
        if not self.config.api_token:
            raise BoardError("MONDAY_API_TOKEN is not set. Check your .env file.")

        variables = variables or {}
        mutation = is_mutation(query)
        if mutation:
            logger.info(f"Sending mutation, variables: {json.dumps(variables, default=str)}")

        try:
            data = await self.retry_policy.run(
                lambda: self._send(query, variables),
                description="mutation" if mutation else "query",
            )
        except BoardError as e:
            logger.error(f"Monday.com request failed: {e} {json.dumps(e.details(), default=str)}")
            raise

        if mutation:
            logger.info(f"Mutation succeeded, data: {json.dumps(data, default=str)}")
        return data

    async def _send(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Perform a single HTTP round trip and classify the outcome."""
        session = await self._get_session()
        headers = {
            "Content-Type": "application/json",
            "Authorization": self.config.api_token,
            "API-Version": self.config.api_version,
        }

        try:
            async with session.post(
                self.config.api_url,
                json={"query": query, "variables": variables},
                headers=headers,
            ) as response:
                status = response.status
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BoardError(f"Monday.com request failed: {e}") from e

        if status == 429 or status >= 500:
            raise BoardTransientError(
                f"Monday.com API HTTP {status}", status_code=status, response_body=body
            )
        if status >= 400:
            raise BoardError(
                f"Monday.com API HTTP {status}", status_code=status, response_body=body
            )

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise BoardError(
                f"Malformed Monday.com response: {e}",
                status_code=status,
                response_body=body,
            ) from e

        if not isinstance(payload, dict):
            raise BoardError(
                "Malformed Monday.com response", status_code=status, response_body=body
            )

        errors = payload.get("errors") or []
        if errors:
            messages = "; ".join(str(e.get("message", "")) for e in errors)
            error_cls = (
                BoardTransientError
                if any(_is_rate_limit_error(e) for e in errors)
                else BoardError
            )
            raise error_cls(
                f"Monday.com API errors: {messages}",
                status_code=status,
                response_body=body,
                errors=errors,
            )

        if payload.get("error_message"):
            error_code = payload.get("error_code")
            error_cls = (
                BoardTransientError
                if str(error_code or "").upper() in _RATE_LIMIT_CODES
                else BoardError
            )
            raise error_cls(
                f"Monday.com API error: {payload['error_message']}",
                status_code=status,
                response_body=body,
                error_code=error_code,
            )

        return payload.get("data") or {}

    async def fetch_all_items(self, board_id: str) -> List[Dict[str, Any]]:
        """Fetch every item on a board, following pagination cursors.

        Args:
            board_id: Board to read.

        Returns:
            Raw item dicts from every page.
        """
        items: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while True:
            variables: Dict[str, Any] = {"boardId": [str(board_id)]}
            if cursor:
                variables["cursor"] = cursor

            data = await self.execute(ITEMS_PAGE_QUERY, variables)
            boards = data.get("boards") or []
            if not boards or not boards[0].get("items_page"):
                break

            page = boards[0]["items_page"]
            items.extend(page.get("items") or [])

            cursor = page.get("cursor")
            if not cursor:
                break

        logger.debug(f"Fetched {len(items)} items from board {board_id}")
        return items

    async def close(self) -> None:
        """Clean up resources."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
