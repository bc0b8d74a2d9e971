import logging
import re
from collections import defaultdict

from .errors import InvalidSize, OrphanSizeRow
from .model import DeviceNode

logger = logging.getLogger(__name__)

# zpool prints every size with powers of 1024, whatever the suffix looks like.
BINARY_UNITS = {
    'B': 0,
    'K': 1,
    'M': 2,
    'G': 3,
    'T': 4,
    'P': 5,
    'E': 6,
    'Z': 7,
    'Y': 8
}

SIZE_RE = re.compile(r'^(\d+(?:\.\d+)?)([BKMGTPEZY])?(?:i?B)?$', re.IGNORECASE)

# Fields filled from each row, by the column count of the report that produced it.
SIZE_LAYOUTS = {
    # zpool list -v -H -p -o name,size,alloc,free
    4: ('raw_size_bytes', 'capacity_bytes', 'available_bytes'),
    # zpool iostat -v -H -p -y 1 1
    7: ('capacity_bytes', 'available_bytes', 'read_ops', 'write_ops', 'read_bandwidth_bps',
        'write_bandwidth_bps'),
    # zpool list -v -H -p
    11: ('raw_size_bytes', 'capacity_bytes', 'available_bytes'),
}

HEADER_COLUMNS = ('size', 'alloc')

GROUP_NAMES = ('logs', 'cache', 'spares', 'special', 'dedup')


def parse_size(value: str) -> int:
    match = SIZE_RE.match(value.strip().replace(',', '.'))
    if not match:
        raise InvalidSize(value)
    number, unit = match.groups()
    if unit is None:
        return round(float(number))
    return round(float(number) * (1024 ** BINARY_UNITS[unit.upper()]))


def parse_optional_size(value: str) -> int | None:
    if value == '-':
        return None
    return parse_size(value)


def _is_header(columns: list[str]) -> bool:
    return columns[1].lower() in HEADER_COLUMNS or not columns[0].strip('-')


def enrich_sizes(pools: list[DeviceNode], raw_size_text: str) -> list[OrphanSizeRow]:
    """Annotate the parsed pools with capacity and throughput figures.

    Rows are matched to devices by (pool, device name). The topology decides the
    shape of the tree, so rows without a matching device are reported and skipped.

    Args:
        pools: (list[DeviceNode]) Pool roots as returned by parse_topology.
        raw_size_text: (str) Output of zpool list and/or zpool iostat in scripted mode.

    Returns:
        (list[OrphanSizeRow]) Rows that matched no device.
    """
    nodes: dict[tuple[str, str], list[DeviceNode]] = defaultdict(list)
    for pool in pools:
        for node in pool.walk():
            nodes[(pool.name, node.name)].append(node)
    pool_names = {pool.name for pool in pools}

    orphans = []
    current_pool = None
    for line in raw_size_text.splitlines():
        columns = line.split()
        fields = SIZE_LAYOUTS.get(len(columns))
        if fields is None or _is_header(columns):
            continue

        name = columns[0]
        if name in pool_names:
            current_pool = name

        matches = nodes.get((current_pool, name))
        if not matches:
            if name in GROUP_NAMES:
                continue
            logger.warning('Size report row %r of pool %r matches no device, skipping', name, current_pool)
            orphans.append(OrphanSizeRow(current_pool, name))
            continue

        values = {field: parse_optional_size(column) for field, column in zip(fields, columns[1:])}
        for node in matches:
            for field, value in values.items():
                if value is not None:
                    setattr(node, field, value)

    return orphans
