"""HTTP client for the public Roblox games API.

RobloxClient wraps httpx.AsyncClient and is the only place that sees raw
upstream JSON. Field names and shapes vary across endpoints (id vs
universeId, favoritesCount vs count, nested vs flat creator fields), so
every response goes through a lenient pydantic model and comes out as a
small frozen dataclass. Callers only ever see three outcomes: a value, a
legitimately absent value (None), or an UpstreamError.

Retries are not sprinkled per call: one RetryPolicy (tenacity under the
hood) wraps every request and only retries TransientUpstreamError.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Optional

import httpx
import structlog
from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from universe_radar.config import settings

log = structlog.get_logger(__name__)

# Explore sorts worth mining for universe ids, matched against the sort name
DISCOVERY_SORT_HINTS = ("popular", "top", "engag", "up", "featured", "home", "trending", "recommended")
# Cap on sorts fetched per discovery run
DISCOVERY_MAX_SORTS = 8


class UpstreamError(Exception):
    """Base class for failures talking to the upstream API."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransientUpstreamError(UpstreamError):
    """Rate limited, 5xx, timeout or transport failure. Safe to retry."""
    pass


class PermanentUpstreamError(UpstreamError):
    """4xx (other than 429) or an unparseable body. Retrying will not help."""
    pass


class NotFoundUpstreamError(PermanentUpstreamError):
    """The upstream does not know this id (HTTP 404)."""
    pass


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with jitter for upstream calls."""

    max_attempts: int = 3
    base_delay: float = 0.25
    max_delay: float = 4.0
    jitter: float = 0.25
    retryable_status: Callable[[int], bool] = field(default=is_retryable_status)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay)
            + wait_random(0, self.jitter),
            retry=retry_if_exception_type(TransientUpstreamError),
            before_sleep=_log_retry,
            reraise=True,
        )


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    log.warning(
        "upstream_retry",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


# --- Result types -----------------------------------------------------------


@dataclass(frozen=True)
class CreatorRef:
    id: int
    type: str  # "USER" | "GROUP"
    name: Optional[str]


@dataclass(frozen=True)
class GameDetails:
    playing: Optional[int] = None
    visits_total: Optional[int] = None
    server_size: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    creator: Optional[CreatorRef] = None
    root_place_id: Optional[int] = None


@dataclass(frozen=True)
class Votes:
    up: Optional[int] = None
    down: Optional[int] = None


@dataclass(frozen=True)
class Favorites:
    total: Optional[int] = None


@dataclass(frozen=True)
class ExploreSort:
    id: str
    name: str


# --- Upstream payload parsing -----------------------------------------------


def _int_or_none(value: Any) -> Optional[int]:
    # Counts and ids are non-negative integers; anything else is unusable.
    # bool is an int subclass; upstream never means a count by true/false
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    if value < 0:
        return None
    return int(value)


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


LenientInt = Annotated[Optional[int], BeforeValidator(_int_or_none)]
LenientStr = Annotated[Optional[str], BeforeValidator(_str_or_none)]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class _CreatorPayload(_Payload):
    id: LenientInt = None
    type: LenientStr = None
    name: LenientStr = None


class _GamePayload(_Payload):
    id: LenientInt = None
    universe_id: LenientInt = Field(default=None, validation_alias="universeId")
    name: LenientStr = None
    description: LenientStr = None
    playing: LenientInt = None
    visits: LenientInt = None
    max_players: LenientInt = Field(default=None, validation_alias="maxPlayers")
    root_place_id: LenientInt = Field(default=None, validation_alias="rootPlaceId")
    creator: Optional[_CreatorPayload] = None
    creator_type: LenientStr = Field(default=None, validation_alias="creatorType")
    creator_target_id: LenientInt = Field(default=None, validation_alias="creatorTargetId")
    creator_name: LenientStr = Field(default=None, validation_alias="creatorName")

    def matches(self, universe_id: int) -> bool:
        return self.id == universe_id or self.universe_id == universe_id

    def creator_ref(self) -> Optional[CreatorRef]:
        nested = self.creator or _CreatorPayload()
        creator_id = nested.id if nested.id is not None else self.creator_target_id
        creator_type = nested.type or self.creator_type
        if creator_id is None or not creator_type:
            return None
        return CreatorRef(
            id=creator_id,
            type=creator_type.upper(),
            name=nested.name or self.creator_name,
        )


class _VotesPayload(_Payload):
    id: LenientInt = None
    universe_id: LenientInt = Field(default=None, validation_alias="universeId")
    up_votes: LenientInt = Field(default=None, validation_alias="upVotes")
    down_votes: LenientInt = Field(default=None, validation_alias="downVotes")

    def matches(self, universe_id: int) -> bool:
        return self.id == universe_id or self.universe_id == universe_id


class _FavoritesPayload(_Payload):
    total: LenientInt = Field(
        default=None, validation_alias=AliasChoices("favoritesCount", "count")
    )


class _UniverseRefPayload(_Payload):
    universe_id: LenientInt = Field(default=None, validation_alias="universeId")


class _NamePayload(_Payload):
    name: LenientStr = None


def _token_or_none(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    return str(value) or None


def _dict_or_none(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


LenientToken = Annotated[Optional[str], BeforeValidator(_token_or_none)]


class _IdPayload(_Payload):
    id: LenientInt = None


class _SortPayload(_Payload):
    sort_id: LenientToken = Field(default=None, validation_alias=AliasChoices("id", "sortId", "token"))
    name: LenientStr = Field(default=None, validation_alias=AliasChoices("displayName", "name", "title"))


class _SortContentItemPayload(_Payload):
    """One explore tile; the universe id sits at a different depth per sort type."""

    universe_id: LenientInt = Field(default=None, validation_alias="universeId")
    content_metadata: Annotated[Optional[_UniverseRefPayload], BeforeValidator(_dict_or_none)] = Field(
        default=None, validation_alias="contentMetadata"
    )
    universe: Annotated[Optional[_IdPayload], BeforeValidator(_dict_or_none)] = None
    game: Annotated[Optional[_UniverseRefPayload], BeforeValidator(_dict_or_none)] = None
    game_data: Annotated[Optional[_UniverseRefPayload], BeforeValidator(_dict_or_none)] = Field(
        default=None, validation_alias="gameData"
    )

    def resolved_universe_id(self) -> Optional[int]:
        candidates = (
            self.universe_id,
            self.content_metadata.universe_id if self.content_metadata else None,
            self.universe.id if self.universe else None,
            self.game.universe_id if self.game else None,
            self.game_data.universe_id if self.game_data else None,
        )
        return next((c for c in candidates if c is not None), None)


def _data_items(payload: Any) -> list[dict]:
    """Extract the list under "data" (or the body itself when it is a list)."""
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


def _first_list(payload: Any, *paths: tuple[str, ...]) -> list[dict]:
    """Dict items of the first list found along `paths` (e.g. ("data", "sorts"))."""
    for path in paths:
        node = payload
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, list):
            return [item for item in node if isinstance(item, dict)]
    return []


def _parse(model: type[_Payload], raw: Any, url: str):
    if not isinstance(raw, dict):
        raw = {}
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise PermanentUpstreamError(f"Unexpected payload from {url}: {exc}", url=url) from exc


# --- Client -----------------------------------------------------------------


class RobloxClient:
    """Async client for the handful of public endpoints the jobs need.

    Owns its httpx.AsyncClient unless one is injected (tests pass a client
    backed by httpx.MockTransport).
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(5.0, self.timeout)),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            headers={"Accept": "application/json"},
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.games_api = settings.roblox_games_api.rstrip("/")
        self.apis_base = settings.roblox_apis_base.rstrip("/")
        self.groups_api = settings.roblox_groups_api.rstrip("/")
        self.users_api = settings.roblox_users_api.rstrip("/")

    async def __aenter__(self) -> "RobloxClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request_json(self, url: str, params: Optional[dict] = None) -> Any:
        try:
            resp = await asyncio.wait_for(
                self.client.get(url, params=params), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise TransientUpstreamError(
                f"Timed out after {self.timeout}s for {url}", url=url
            ) from exc
        except httpx.HTTPError as exc:
            raise TransientUpstreamError(
                f"{type(exc).__name__} for {url}: {exc}", url=url
            ) from exc

        status = resp.status_code
        if self.retry_policy.retryable_status(status):
            raise TransientUpstreamError(f"HTTP {status} for {url}", status_code=status, url=url)
        if status == 404:
            raise NotFoundUpstreamError(f"HTTP 404 for {url}", status_code=status, url=url)
        if status >= 400:
            raise PermanentUpstreamError(f"HTTP {status} for {url}", status_code=status, url=url)

        try:
            return resp.json()
        except ValueError as exc:
            raise PermanentUpstreamError(f"Invalid JSON from {url}", status_code=status, url=url) from exc

    async def get_json(self, url: str, params: Optional[dict] = None) -> Any:
        """GET a JSON body, retrying transient failures per the retry policy."""
        return await self.retry_policy.retrying()(self._request_json, url, params)

    async def get_game_details(self, universe_id: int) -> GameDetails:
        url = f"{self.games_api}/v1/games"
        payload = await self.get_json(url, {"universeIds": universe_id})
        for raw in _data_items(payload):
            item = _parse(_GamePayload, raw, url)
            if item.matches(universe_id):
                return GameDetails(
                    playing=item.playing,
                    visits_total=item.visits,
                    server_size=item.max_players,
                    name=item.name,
                    description=item.description,
                    creator=item.creator_ref(),
                    root_place_id=item.root_place_id,
                )
        return GameDetails()

    async def get_votes(self, universe_id: int) -> Votes:
        url = f"{self.games_api}/v1/games/votes"
        payload = await self.get_json(url, {"universeIds": universe_id})
        for raw in _data_items(payload):
            item = _parse(_VotesPayload, raw, url)
            if item.matches(universe_id):
                return Votes(up=item.up_votes, down=item.down_votes)
        return Votes()

    async def get_favorites(self, universe_id: int) -> Favorites:
        """Favorites count; a 404 (place id or bogus id) is an absent value."""
        url = f"{self.games_api}/v1/games/{universe_id}/favorites/count"
        try:
            payload = await self.get_json(url)
        except NotFoundUpstreamError:
            log.debug("favorites_not_found", universe_id=universe_id)
            return Favorites(total=None)
        return Favorites(total=_parse(_FavoritesPayload, payload, url).total)

    async def resolve_universe_id(self, place_id: int) -> Optional[int]:
        """Map a place id to its universe id, trying two public endpoints."""
        url = f"{self.apis_base}/universes/v1/places/{place_id}/universe"
        try:
            payload = await self.get_json(url)
            universe_id = _parse(_UniverseRefPayload, payload, url).universe_id
            if universe_id is not None:
                return universe_id
        except UpstreamError as exc:
            log.debug("place_resolve_failed", place_id=place_id, endpoint="universes", error=str(exc))

        url = f"{self.games_api}/v1/games/multiget-place-details"
        try:
            payload = await self.get_json(url, {"placeIds": place_id})
            items = _data_items(payload)
            if items:
                return _parse(_UniverseRefPayload, items[0], url).universe_id
        except UpstreamError as exc:
            log.debug("place_resolve_failed", place_id=place_id, endpoint="multiget", error=str(exc))

        return None

    async def get_group_name(self, group_id: int) -> Optional[str]:
        url = f"{self.groups_api}/v1/groups/{group_id}"
        return _parse(_NamePayload, await self.get_json(url), url).name

    async def get_user_name(self, user_id: int) -> Optional[str]:
        url = f"{self.users_api}/v1/users/{user_id}"
        return _parse(_NamePayload, await self.get_json(url), url).name

    async def get_explore_sorts(self, session_id: str) -> list[ExploreSort]:
        """Sorts (homepage rows) currently offered by the explore API."""
        url = f"{self.apis_base}/explore-api/v1/get-sorts"
        payload = await self.get_json(url, {"sessionId": session_id, "platformType": "PC"})
        sorts = []
        for raw in _first_list(payload, ("sorts",), ("data", "sorts"), ("pageData", "sorts")):
            item = _parse(_SortPayload, raw, url)
            if item.sort_id:
                sorts.append(ExploreSort(id=item.sort_id, name=item.name or ""))
        return sorts

    async def get_sort_universe_ids(self, session_id: str, sort_id: str) -> list[int]:
        """Unique universe ids listed in one explore sort, in listing order."""
        url = f"{self.apis_base}/explore-api/v1/get-sort-content"
        payload = await self.get_json(url, {"sessionId": session_id, "sortId": sort_id})
        items = _first_list(
            payload, ("contents",), ("games",), ("data", "contents"), ("data", "games")
        )
        ids: dict[int, None] = {}
        for raw in items:
            universe_id = _parse(_SortContentItemPayload, raw, url).resolved_universe_id()
            if universe_id is not None:
                ids[universe_id] = None
        return list(ids)

    async def discover_universe_ids(self, max_ids: int = 200) -> list[int]:
        """Collect up to `max_ids` universe ids from the popular explore sorts.

        A failing sort is skipped; failing to list the sorts at all raises.
        """
        session_id = str(uuid.uuid4())
        sorts = await self.get_explore_sorts(session_id)
        if not sorts:
            log.warning("discovery_no_sorts")
            return []

        chosen = [s for s in sorts if any(hint in s.name.lower() for hint in DISCOVERY_SORT_HINTS)]
        found: dict[int, None] = {}
        for sort in (chosen or sorts)[:DISCOVERY_MAX_SORTS]:
            try:
                ids = await self.get_sort_universe_ids(session_id, sort.id)
            except UpstreamError as exc:
                log.warning("discovery_sort_skipped", sort_id=sort.id, sort_name=sort.name, error=str(exc))
                continue
            found.update(dict.fromkeys(ids))
            if len(found) >= max_ids:
                break
        return list(found)[:max_ids]

    async def close(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()
