"""Mochi API client for creating and updating cards.

Uses the Mochi REST API directly via requests library.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from mochi_sync.models.sync_state import UNKNOWN_REMOTE_ID
from mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

# Where a card ID may live in a create/update response, tried in order.
REMOTE_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("id",),
    ("_id",),
    ("cardId",),
    ("card", "id"),
)


class MochiAPIError(Exception):
    """Exception raised for Mochi API errors.

    Args:
        message (str): Error message
        status_code (int): HTTP status code, 0 when no response was received

    Attributes:
        message (str): Error message
        status_code (int): HTTP status code
    """

    def __init__(self, message: str, status_code: int = 0):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class DeckNotFound(MochiAPIError):
    """The target deck is empty or does not exist."""

    pass


class RateLimited(MochiAPIError):
    """Mochi kept answering 429 after every retry."""

    pass


class ServiceError(MochiAPIError):
    """Any other transport, authentication or API failure."""

    pass


@dataclass
class RemoteCardRef:
    """Reference to a card stored in Mochi."""

    remote_id: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class RemoteDeck:
    """A deck as listed by Mochi."""

    id: str
    name: str


def extract_remote_id(body: Any) -> str:
    """Find the card ID in a response body.

    Mochi has answered with several shapes over time; the first candidate
    path holding a non-empty string wins.

    Args:
        body: Parsed JSON response

    Returns:
        str: The card ID, or UNKNOWN_REMOTE_ID if none of the paths match
    """
    for path in REMOTE_ID_PATHS:
        value = body
        for key in path:
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(key)
        if isinstance(value, str) and value:
            return value
    return UNKNOWN_REMOTE_ID


def _is_rate_limited(response: requests.Response) -> bool:
    return response.status_code == 429


def _last_response(retry_state: RetryCallState) -> requests.Response:
    """Hand back the final 429 response once attempts are exhausted."""
    return retry_state.outcome.result()


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "rate_limited_retry",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


class MochiClient:
    """Client for the Mochi cards API.

    Requests that Mochi rate limits (HTTP 429) are retried with exponential
    backoff starting at one second and doubling. When the attempts run out
    the call fails with RateLimited.

    Args:
        api_key (str): Mochi API key
        base_url (str): Mochi API base URL
        timeout (float): Timeout in seconds for a single request
        max_attempts (int): Attempts per call while rate limited
        sleep (Callable[[float], None]): Used to wait between attempts

    Attributes:
        api_key (str): Mochi API key
        base_url (str): Mochi API base URL
        timeout (float): Timeout in seconds for a single request
        max_attempts (int): Attempts per call while rate limited
    """

    DEFAULT_BASE_URL = "https://app.mochi.cards/api"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        max_attempts: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._sleep = sleep

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> requests.Response:
        """Send one HTTP request.

        Raises:
            ServiceError: If no response was received
        """
        try:
            return requests.request(
                method,
                f"{self.base_url}{endpoint}",
                auth=(self.api_key, ""),
                json=payload,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ServiceError("Mochi request timed out") from e
        except requests.exceptions.ConnectionError as e:
            raise ServiceError(f"Cannot connect to Mochi at {self.base_url}") from e
        except requests.exceptions.RequestException as e:
            raise ServiceError(f"Mochi request failed: {e}") from e

    def _send(
        self,
        method: str,
        endpoint: str,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> requests.Response:
        """Send a request, retrying while Mochi answers 429.

        Returns:
            requests.Response: The first non-429 response, or the last 429
            response once max_attempts is reached
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=30),
            retry=retry_if_result(_is_rate_limited),
            retry_error_callback=_last_response,
            before_sleep=_log_retry,
            sleep=self._sleep,
        )
        return retrying(self._request, method, endpoint, payload, params)

    def _handle_response(
        self,
        response: requests.Response,
        operation: str,
        not_found: type[MochiAPIError] = ServiceError,
    ) -> Any:
        """Map the response status onto the error taxonomy.

        Args:
            response (requests.Response): Final response for the call
            operation (str): Human-readable name of the call, for messages
            not_found (type[MochiAPIError]): Error raised on 404

        Returns:
            Any: Parsed JSON body, or an empty dict if the body is not JSON

        Raises:
            RateLimited: On 429
            DeckNotFound: On 404 when not_found is DeckNotFound
            ServiceError: On any other error status
        """
        status = response.status_code
        if status == 429:
            raise RateLimited(
                f"{operation} failed: 429 - rate limited after "
                f"{self.max_attempts} attempt(s)",
                status_code=status,
            )
        if status == 404:
            raise not_found(
                f"{operation} failed: 404 - {response.text or 'Not found'}",
                status_code=status,
            )
        if status >= 400:
            raise ServiceError(
                f"{operation} failed: {status} - {response.text or 'Unknown error'}",
                status_code=status,
            )
        try:
            return response.json()
        except ValueError:
            return {}

    def create_card(
        self, content: str, deck_id: str, tags: Optional[list[str]] = None
    ) -> RemoteCardRef:
        """Create a card in a deck.

        Args:
            content (str): Markdown content of the card
            deck_id (str): Mochi deck ID
            tags (list[str], optional): Manual tags for the card

        Returns:
            RemoteCardRef: Reference holding the new card's ID

        Raises:
            DeckNotFound: If deck_id is empty or Mochi does not know it
            RateLimited: If Mochi still rate limits after every retry
            ServiceError: On any other failure
        """
        if not deck_id:
            raise DeckNotFound("Deck ID is required to create a card")

        response = self._send(
            "POST",
            "/cards/",
            {"content": content, "deck-id": deck_id, "manual-tags": tags or []},
        )
        body = self._handle_response(response, "Create card", not_found=DeckNotFound)
        remote_id = extract_remote_id(body)
        if remote_id == UNKNOWN_REMOTE_ID:
            logger.warning("create_response_without_id", deck_id=deck_id)
        return RemoteCardRef(remote_id=remote_id, raw=body if isinstance(body, dict) else {})

    def update_card(
        self, remote_id: str, content: str, tags: Optional[list[str]] = None
    ) -> RemoteCardRef:
        """Replace the content and tags of an existing card.

        An UNKNOWN_REMOTE_ID is sent as-is; Mochi cannot resolve it and the
        call fails.

        Args:
            remote_id (str): Mochi card ID
            content (str): Markdown content of the card
            tags (list[str], optional): Manual tags for the card

        Returns:
            RemoteCardRef: Reference to the updated card
        """
        response = self._send(
            "POST",
            f"/cards/{remote_id}",
            {"content": content, "manual-tags": tags or []},
        )
        body = self._handle_response(response, "Update card")
        found_id = extract_remote_id(body)
        return RemoteCardRef(
            remote_id=remote_id if found_id == UNKNOWN_REMOTE_ID else found_id,
            raw=body if isinstance(body, dict) else {},
        )

    def list_decks(self) -> list[RemoteDeck]:
        """List every deck, following Mochi's bookmark pagination.

        Returns:
            list[RemoteDeck]: Decks with their IDs and names

        Raises:
            ServiceError: On transport or authentication failure
        """
        decks: list[RemoteDeck] = []
        bookmark: Optional[str] = None

        while True:
            params = {"bookmark": bookmark} if bookmark else None
            response = self._send("GET", "/decks/", params=params)
            try:
                body = self._handle_response(response, "List decks")
            except RateLimited as e:
                raise ServiceError(e.message, status_code=e.status_code) from e

            docs = body.get("docs") if isinstance(body, dict) else None
            if not isinstance(docs, list):
                docs = []
            for doc in docs:
                if not isinstance(doc, dict) or not isinstance(doc.get("id"), str):
                    continue
                if doc["id"]:
                    decks.append(RemoteDeck(id=doc["id"], name=str(doc.get("name") or "")))

            next_bookmark = body.get("bookmark") if isinstance(body, dict) else None
            if not docs or not next_bookmark or next_bookmark == bookmark:
                break
            bookmark = next_bookmark

        return decks
