"""
Event Source Adapter

Fetches raw interaction events from the external event-analytics API and
normalizes them for aggregation. The event API is a soft dependency: missing
credentials, error responses and transport failures all degrade to an
"unavailable" result instead of raising.

The upstream date filters are unreliable across day boundaries, so the adapter
over-fetches the most recent events and filters locally by resolved day.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import httpx
import structlog

from agrimarket.config import get_settings
from agrimarket.config.settings import PostHogSettings
from .window import DateWindow

logger = structlog.get_logger(__name__)
settings = get_settings()

ANONYMOUS_VISITOR = "anonymous"
FALLBACK_TIME_SOURCE = "fallback"

# Resolution order for an event's time
TIMESTAMP_FIELDS: Tuple[Tuple[str, ...], ...] = (
    ("timestamp",),
    ("time",),
    ("properties", "$time"),
    ("properties", "$timestamp"),
)


@dataclass(frozen=True)
class Event:
    """One tracked interaction, read-only to this service"""
    name: str
    visitor_id: str
    timestamp: datetime
    properties: Dict[str, Any] = field(default_factory=dict)
    time_source: str = "timestamp"

    @property
    def day(self) -> date:
        return self.timestamp.date()

    def prop(self, key: str) -> Any:
        return self.properties.get(key)


@dataclass(frozen=True)
class ResolvedTime:
    """Event time together with the field it came from"""
    value: datetime
    source: str


@dataclass
class EventFetchResult:
    """Normalized events, or an explicit unavailable signal"""
    events: List[Event] = field(default_factory=list)
    available: bool = True
    reason: Optional[str] = None

    @classmethod
    def unavailable(cls, reason: str) -> "EventFetchResult":
        return cls(events=[], available=False, reason=reason)


class EventSource(Protocol):
    """Anything that can supply the events for a reporting window"""

    async def fetch_events(self, window: DateWindow) -> EventFetchResult:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an event time value into an aware UTC datetime.

    Accepts ISO-8601 strings and epoch seconds. Anything else, including
    strings that fail to parse, yields None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the value past datetime.min or datetime.max
        return None


def _lookup(raw: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    current: Any = raw
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def resolve_event_time(raw: Dict[str, Any], now: Optional[datetime] = None) -> ResolvedTime:
    """
    Resolve when an event happened.

    Tries `timestamp`, then `time`, then `properties.$time`, then
    `properties.$timestamp`; an unparseable value counts as missing. When
    nothing usable is found the event is stamped with `now`.
    """
    for path in TIMESTAMP_FIELDS:
        parsed = parse_timestamp(_lookup(raw, path))
        if parsed is not None:
            return ResolvedTime(value=parsed, source=".".join(path))
    return ResolvedTime(value=now or _utcnow(), source=FALLBACK_TIME_SOURCE)


def normalize_event(raw: Dict[str, Any], now: Optional[datetime] = None) -> Event:
    """Build an Event from one upstream event object."""
    resolved = resolve_event_time(raw, now=now)
    properties = raw.get("properties")
    visitor_id = raw.get("distinct_id")

    return Event(
        name=str(raw.get("event") or ""),
        visitor_id=str(visitor_id) if visitor_id not in (None, "") else ANONYMOUS_VISITOR,
        timestamp=resolved.value,
        properties=dict(properties) if isinstance(properties, dict) else {},
        time_source=resolved.source,
    )


def filter_to_window(events: Iterable[Event], window: DateWindow) -> List[Event]:
    """Keep events whose day falls inside the inclusive window."""
    return [event for event in events if window.contains(event.day)]


class PostHogEventSource:
    """
    Event adapter for the PostHog events API.

    Example:
        source = PostHogEventSource()
        result = await source.fetch_events(DateWindow.last_days(7))
        if result.available:
            ...
    """

    def __init__(
        self,
        config: Optional[PostHogSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or settings.posthog
        self._client = client
        self._clock = clock or _utcnow

    @property
    def events_url(self) -> str:
        return f"{self.config.host.rstrip('/')}/api/projects/{self.config.project_id}/events/"

    async def _get(self, url: str, params: Dict[str, Any], headers: Dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, params=params, headers=headers)
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            return await client.get(url, params=params, headers=headers)

    async def fetch_events(self, window: DateWindow) -> EventFetchResult:
        if not self.config.is_configured:
            logger.warning("Event API credentials not configured, event analytics unavailable")
            return EventFetchResult.unavailable("not_configured")

        headers = {
            "Authorization": f"Bearer {self.config.personal_api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }
        params = {"limit": self.config.event_limit}

        try:
            response = await self._get(self.events_url, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Event API request failed", error=str(e), error_type=type(e).__name__)
            return EventFetchResult.unavailable("transport_error")

        if not response.is_success:
            logger.warning("Event API returned an error", status_code=response.status_code)
            return EventFetchResult.unavailable(f"http_{response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            logger.warning("Event API returned an undecodable body", error=str(e))
            return EventFetchResult.unavailable("invalid_body")

        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            results = []

        now = self._clock()
        events = [normalize_event(raw, now=now) for raw in results if isinstance(raw, dict)]
        kept = filter_to_window(events, window)
        today = now.date()

        logger.info(
            "Event API fetch completed",
            window=str(window),
            fetched=len(events),
            kept=len(kept),
            fallback_timestamps=sum(1 for e in events if e.time_source == FALLBACK_TIME_SOURCE),
            today=sum(1 for e in kept if e.day == today),
        )
        return EventFetchResult(events=kept)
