"""
Synapse Router - Usage Storage

Append-only ledger of completed requests.

- Bounded retention: a deque capped at `cap` records, oldest evicted first
- Backed by a JSON array document (usage.json), loaded lazily on first use
- Appends land in memory; a background task rewrites the document
  atomically every few seconds, and once more on shutdown
- A failed write is logged and retried on the next flush
"""

import asyncio
import json
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Union

from ..core.errors import ParseError
from ..core.models import RoutingReason, utcnow
from ..core.persistence import JsonFileStore
from ..observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RETENTION = 10_000
DEFAULT_FLUSH_INTERVAL = 5.0


# ============================================================
# Records
# ============================================================

@dataclass(frozen=True)
class TokenUsage:
    input: int = 0
    output: int = 0
    total: int = 0

    @classmethod
    def of(cls, input_tokens: int, output_tokens: int, total: Optional[int] = None) -> "TokenUsage":
        return cls(
            input=input_tokens,
            output=output_tokens,
            total=total if total is not None else input_tokens + output_tokens,
        )

    def to_dict(self) -> Dict[str, int]:
        return {"input": self.input, "output": self.output, "total": self.total}


@dataclass(frozen=True)
class UsageRecord:
    """Immutable ledger entry for one completed (or failed) request."""
    model: str
    provider: str
    tokens: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    latency_ms: float = 0.0
    success: bool = True
    routing_reason: RoutingReason = RoutingReason.PRIMARY
    project_id: Optional[str] = None
    agent_id: Optional[str] = None
    agent_type: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "projectId": self.project_id,
            "agentId": self.agent_id,
            "agentType": self.agent_type,
            "model": self.model,
            "provider": self.provider,
            "tokens": self.tokens.to_dict(),
            "cost": self.cost,
            "latencyMs": self.latency_ms,
            "success": self.success,
            "routingReason": self.routing_reason.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageRecord":
        """
        Rebuild a record from its persisted form.

        Raises:
            KeyError / TypeError / ValueError: if the entry is malformed
        """
        tokens = data.get("tokens") or {}
        return cls(
            id=str(data["id"]),
            timestamp=_parse_timestamp(data["timestamp"]),
            project_id=data.get("projectId"),
            agent_id=data.get("agentId"),
            agent_type=data.get("agentType"),
            model=str(data.get("model") or ""),
            provider=str(data.get("provider") or ""),
            tokens=TokenUsage(
                input=int(tokens.get("input", 0)),
                output=int(tokens.get("output", 0)),
                total=int(tokens.get("total", 0)),
            ),
            cost=float(data.get("cost", 0.0)),
            latency_ms=float(data.get("latencyMs", 0.0)),
            success=bool(data.get("success", False)),
            routing_reason=RoutingReason(data.get("routingReason", RoutingReason.DEFAULT.value)),
        )


# ============================================================
# Filters
# ============================================================

def _parse_timestamp(value: Any) -> datetime:
    """ISO-8601 string or epoch milliseconds -> aware UTC datetime."""
    if isinstance(value, bool):
        raise ValueError("timestamp must be a string or a number")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError("timestamp must be a string or a number")


@dataclass(frozen=True)
class TimeRange:
    """Inclusive timestamp bounds; a missing bound is open."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, timestamp: datetime) -> bool:
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        return True


def parse_time_range(raw: Optional[str]) -> Optional[TimeRange]:
    """
    Parse the timeRange query parameter: JSON {"start": ..., "end": ...}.

    Raises:
        ParseError: if the value is not a JSON object of valid timestamps
    """
    if raw is None or not raw.strip():
        return None

    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ParseError("timeRange", str(e)) from e

    if not isinstance(data, dict):
        raise ParseError("timeRange", "expected an object with start and end")

    try:
        start = _parse_timestamp(data["start"]) if data.get("start") is not None else None
        end = _parse_timestamp(data["end"]) if data.get("end") is not None else None
    except (ValueError, OverflowError, OSError) as e:
        raise ParseError("timeRange", str(e)) from e

    if start is not None and end is not None and start > end:
        raise ParseError("timeRange", "start is after end")

    return TimeRange(start=start, end=end)


@dataclass(frozen=True)
class UsageFilters:
    """Query filters; every supplied filter must match."""
    project_id: Optional[str] = None
    agent_id: Optional[str] = None
    time_range: Optional[TimeRange] = None

    def matches(self, record: UsageRecord) -> bool:
        if self.project_id is not None and record.project_id != self.project_id:
            return False
        if self.agent_id is not None and record.agent_id != self.agent_id:
            return False
        if self.time_range is not None and not self.time_range.contains(record.timestamp):
            return False
        return True


# ============================================================
# Store
# ============================================================

class UsageStore:
    """
    Bounded usage ledger.

    `path=None` keeps the ledger in memory only. Appends only touch memory;
    the document is rewritten by flush(), which the background flush task
    runs every `flush_interval_seconds` off the event loop.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        cap: int = DEFAULT_RETENTION,
        flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL,
    ):
        if cap < 1:
            raise ValueError("cap must be at least 1")
        self.cap = cap
        self._file = JsonFileStore(path) if path is not None else None
        self._records: Deque[UsageRecord] = deque(maxlen=cap)
        self._loaded = False
        self._dirty = False
        self._lock = threading.Lock()
        # Held across snapshot + write so documents land in snapshot order
        self._write_lock = threading.Lock()

        self._flush_interval = flush_interval_seconds
        self._flush_task: Optional[asyncio.Task] = None

    @property
    def path(self) -> Optional[Path]:
        return self._file.path if self._file is not None else None

    def _ensure_loaded(self):
        """Load the persisted ledger once. Caller holds the lock."""
        if self._loaded:
            return
        self._loaded = True

        if self._file is None:
            return

        try:
            raw = self._file.load(default=[])
        except (OSError, ValueError) as e:
            logger.warning("Failed to load usage ledger, starting empty", path=str(self._file.path), error=str(e))
            return

        if not isinstance(raw, list):
            logger.warning("Usage ledger is not a JSON array, starting empty", path=str(self._file.path))
            return

        skipped = 0
        for entry in raw:
            try:
                self._records.append(UsageRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError):
                skipped += 1

        if skipped:
            logger.warning("Skipped malformed usage entries", skipped=skipped)

    @property
    def pending(self) -> bool:
        """True when memory holds changes not yet written to disk."""
        with self._lock:
            return self._dirty

    def append(self, record: UsageRecord) -> UsageRecord:
        with self._lock:
            self._ensure_loaded()
            self._records.append(record)
            self._dirty = self._file is not None
        return record

    def query(self, filters: Optional[UsageFilters] = None) -> List[UsageRecord]:
        """Records matching every supplied filter, oldest first."""
        with self._lock:
            self._ensure_loaded()
            records = list(self._records)

        if filters is None:
            return records
        return [record for record in records if filters.matches(record)]

    def clear(self):
        with self._lock:
            self._loaded = True
            self._records.clear()
            self._dirty = self._file is not None

    def __len__(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return len(self._records)

    # ============================================================
    # Persistence
    # ============================================================

    def flush(self) -> bool:
        """
        Rewrite the ledger document if anything changed since the last write.

        Blocking; async callers go through flush_async(). A failed write is
        logged, and the changes stay pending for the next flush.

        Returns:
            True when a document was written
        """
        if self._file is None:
            return False

        with self._write_lock:
            with self._lock:
                if not self._dirty:
                    return False
                snapshot = [record.to_dict() for record in self._records]
                self._dirty = False

            try:
                self._file.write(snapshot)
            except (OSError, TypeError, ValueError) as e:
                with self._lock:
                    self._dirty = True
                logger.error("Failed to persist usage ledger", path=str(self._file.path), error=str(e))
                return False

        logger.debug("Usage ledger flushed", path=str(self._file.path), records=len(snapshot))
        return True

    async def flush_async(self) -> bool:
        """Run flush() in a worker thread."""
        return await asyncio.to_thread(self.flush)

    @property
    def is_flushing(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    async def start_background_flush(self):
        """Start the task that periodically writes pending records."""
        if self.is_flushing:
            return

        async def flush_loop():
            while True:
                await asyncio.sleep(self._flush_interval)
                await self.flush_async()

        self._flush_task = asyncio.create_task(flush_loop())

    async def stop_background_flush(self):
        """Stop the flush task and write whatever is still pending."""
        if self._flush_task:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        await self.flush_async()
