"""
Parse the config section of `zpool status` into a tree of pools, vdevs and disks.

The tree is only encoded by indentation, e.g.:

    NAME          STATE     READ WRITE CKSUM
    tank          DEGRADED     0     0     0
      mirror-0    DEGRADED     0     0     0
        sda       ONLINE       0     0     0
        sdb       FAULTED      3     0     0  too many errors
    logs
      sdc         ONLINE       0     0     0
    spares
      sdd         AVAIL
"""

import logging
import re

from .errors import InvalidCounter, InvalidSize, MalformedIndentation, UnknownHealthState
from .model import DeviceNode, Health, Kind, Role
from .sizes import parse_size

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r'^\s*NAME\s+STATE(?:\s|$)')

# pool:, state:, errors: and friends; device names never end in a colon
SECTION_RE = re.compile(r'^\s*\w+:(?:\s|$)')

VDEV_NAME_RE = re.compile(
    r'^(?:mirror|raidz[123]?|draid[123]?(?::\w+)*|spare|replacing|indirect|root|log|cache)(?:-\d+)?$')

HEALTH_STATES = {
    'ONLINE': Health.ONLINE,
    'DEGRADED': Health.DEGRADED,
    'FAULTED': Health.FAULTED,
    'OFFLINE': Health.OFFLINE,
    'AVAIL': Health.AVAILABLE,
    'AVAILABLE': Health.AVAILABLE,
    'UNAVAIL': Health.UNAVAILABLE,
    'UNAVAILABLE': Health.UNAVAILABLE,
    'REMOVED': Health.REMOVED,
    # hot spare currently replacing a device
    'INUSE': Health.ONLINE,
}

GROUP_ROLES = {
    'logs': Role.LOG,
    'cache': Role.CACHE,
    'spares': Role.SPARE,
    'special': Role.SPECIAL,
    'dedup': Role.DEDUP,
}

NOT_APPLICABLE = ('-', 'N/A')


def parse_health(token: str) -> Health:
    try:
        return HEALTH_STATES[token]
    except KeyError:
        raise UnknownHealthState(token) from None


def parse_counter(token: str) -> int:
    if token in NOT_APPLICABLE:
        return 0
    try:
        return parse_size(token)
    except InvalidSize:
        raise InvalidCounter(token) from None


def classify(name: str) -> Kind:
    return Kind.VDEV if VDEV_NAME_RE.match(name) else Kind.DISK


class _TreeBuilder:
    """Builds one pool from the rows of a config block.

    Open levels are kept on a stack of (column, node) pairs; the pool is always
    at the bottom.
    """

    def __init__(self):
        self.pool: DeviceNode | None = None
        self.stack: list[tuple[int, DeviceNode]] = []
        self.role = Role.DATA

    def add(self, line: str):
        expanded = line.expandtabs(8)
        column = len(expanded) - len(expanded.lstrip())
        parts = expanded.split()
        name = parts[0]

        if self.pool is None:
            self.pool = self._node(name, Kind.POOL, name, parts[1:])
            self.stack = [(column, self.pool)]
            return

        pool_column = self.stack[0][0]
        if column == pool_column and name in GROUP_ROLES:
            self.role = GROUP_ROLES[name]
            del self.stack[1:]
            return
        if column <= pool_column:
            raise MalformedIndentation(line)

        dedented = False
        while self.stack[-1][0] > column:
            self.stack.pop()
            dedented = True
        if self.stack[-1][0] == column:
            self.stack.pop()
        elif dedented:
            raise MalformedIndentation(line)

        parent = self.stack[-1][1]
        if parent.kind is Kind.DISK:
            logger.debug('Treating %s in pool %s as a vdev since it has children', parent.name, self.pool.name)
            parent.kind = Kind.VDEV

        node = self._node(name, classify(name), self.pool.name, parts[1:])
        parent.children.append(node)
        self.stack.append((column, node))

    def _node(self, name: str, kind: Kind, pool_name: str, fields: list[str]) -> DeviceNode:
        if not fields:
            raise UnknownHealthState('')
        health = parse_health(fields[0])

        # spares never report error counters, only a state and a comment
        if self.role is Role.SPARE:
            counters, comment = [], fields[1:]
        else:
            counters, comment = fields[1:4], fields[4:]
        read, write, checksum = (parse_counter(token) for token in counters + ['0'] * (3 - len(counters)))

        return DeviceNode(
            name=name,
            kind=kind,
            health=health,
            pool_name=pool_name,
            read_errors=read,
            write_errors=write,
            checksum_errors=checksum,
            role=self.role,
            comment=' '.join(comment) or None,
        )


def parse_topology(raw_status_text: str) -> list[DeviceNode]:
    """Parse `zpool status` output into one tree per pool.

    Raises:
        ParseError: The text holds a config block that cannot be trusted.
    """
    pools: list[DeviceNode] = []
    builder = None

    for line in raw_status_text.splitlines():
        if HEADER_RE.match(line):
            if builder is not None and builder.pool is not None:
                pools.append(builder.pool)
            builder = _TreeBuilder()
            continue

        if builder is None:
            continue

        if not line.strip() or SECTION_RE.match(line):
            if builder.pool is not None:
                pools.append(builder.pool)
            builder = None
            continue

        builder.add(line)

    if builder is not None and builder.pool is not None:
        pools.append(builder.pool)

    logger.debug('Parsed %d pools: %s', len(pools), ', '.join(pool.name for pool in pools))
    return pools
