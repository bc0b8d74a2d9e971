from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple


class Kind(Enum):
    POOL = 'pool'
    VDEV = 'vdev'
    DISK = 'disk'


class Health(Enum):
    ONLINE = 'online'
    DEGRADED = 'degraded'
    FAULTED = 'faulted'
    OFFLINE = 'offline'
    AVAILABLE = 'available'
    UNAVAILABLE = 'unavailable'
    REMOVED = 'removed'


class Role(Enum):
    DATA = 'data'
    LOG = 'log'
    CACHE = 'cache'
    SPARE = 'spare'
    SPECIAL = 'special'
    DEDUP = 'dedup'


@dataclass
class DeviceNode:
    name: str
    kind: Kind
    health: Health
    pool_name: str
    read_errors: int = 0
    write_errors: int = 0
    checksum_errors: int = 0
    raw_size_bytes: int | None = None
    capacity_bytes: int | None = None
    available_bytes: int | None = None
    read_ops: int | None = None
    write_ops: int | None = None
    read_bandwidth_bps: int | None = None
    write_bandwidth_bps: int | None = None
    role: Role = Role.DATA
    comment: str | None = None
    children: list['DeviceNode'] = field(default_factory=list)

    def walk(self):
        """Yield this node and all of its descendants, depth-first pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


class MetricSample(NamedTuple):
    name: str
    labels: dict[str, str]
    value: float
