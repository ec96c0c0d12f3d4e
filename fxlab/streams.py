from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, cast

import redis

from fxlab.core.events import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActivityStream:
    channel: str

    @property
    def key(self) -> str:
        return f"activity:{self.channel}"


def publish_to_stream(*, r: redis.Redis, stream: ActivityStream, fields: Mapping[str, str]) -> str:
    """Append an entry to an activity stream."""

    # redis-py stubs expect field/value unions; we only ever publish string fields/values.
    stream_id = r.xadd(stream.key, {str(k): str(v) for k, v in fields.items()})
    return cast(str, stream_id)


def read_stream(*, r: redis.Redis, stream: ActivityStream, count: int = 20, start: str = "-", end: str = "+") -> list[dict[str, object]]:
    entries = r.xrange(stream.key, min=start, max=end, count=count)
    return [{"id": mid, "fields": fields} for mid, fields in entries]


class RedisActivitySink:
    """Notification subscriber that mirrors every notification into a Redis Stream."""

    def __init__(self, *, r: redis.Redis, stream: ActivityStream) -> None:
        self._r = r
        self._stream = stream

    def __call__(self, note: Notification) -> None:
        publish_to_stream(r=self._r, stream=self._stream, fields=note.as_payload())
