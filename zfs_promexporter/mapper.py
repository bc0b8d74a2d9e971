import logging
from typing import NamedTuple

from .model import DeviceNode, Health, Kind, MetricSample, Role

logger = logging.getLogger(__name__)

METRICS = {
    'zfs_health': 'The health of the device. This is an enum.',
    'zfs_read_errors': 'The amount of I/O errors that occurred during reading',
    'zfs_write_errors': 'The amount of I/O errors that occurred during writing',
    'zfs_checksum_errors': 'The amount of checksum errors, meaning the device returned corrupted data from a read request',
    'zfs_disk_count': 'Total count of drives in this pool or vdev',
    'zfs_vdev_count': 'Count of vdevs in this pool or vdev',
    'zfs_spare_count': 'The amount of spare drives',
    'zfs_raw_size': 'The raw size of this device (this is not the usable space)',
    'zfs_capacity': 'The allocated capacity of the device in bytes',
    'zfs_available': 'The available bytes in the device',
    'zfs_read_operations': 'The read operations for this device per second',
    'zfs_write_operations': 'The write operations for this device per second',
    'zfs_read_bandwidth': 'The read bandwidth for this device in bytes per second',
    'zfs_write_bandwidth': 'The write bandwidth for this device in bytes per second',
}

ERROR_FIELDS = (
    ('zfs_read_errors', 'read_errors'),
    ('zfs_write_errors', 'write_errors'),
    ('zfs_checksum_errors', 'checksum_errors'),
)

OPTIONAL_FIELDS = (
    ('zfs_raw_size', 'raw_size_bytes'),
    ('zfs_capacity', 'capacity_bytes'),
    ('zfs_available', 'available_bytes'),
    ('zfs_read_operations', 'read_ops'),
    ('zfs_write_operations', 'write_ops'),
    ('zfs_read_bandwidth', 'read_bandwidth_bps'),
    ('zfs_write_bandwidth', 'write_bandwidth_bps'),
)


class Tally(NamedTuple):
    disks: int = 0
    vdevs: int = 0
    spares: int = 0

    def __add__(self, other):
        return Tally(*(a + b for a, b in zip(self, other)))


def _tally(node: DeviceNode, tallies: dict[int, Tally]) -> Tally:
    """Count the descendants of every node, bottom-up.

    Returns the tally of node itself as seen by its parent.
    """
    below = Tally()
    for child in node.children:
        below += _tally(child, tallies)
    tallies[id(node)] = below
    return below + Tally(
        disks=int(node.kind is Kind.DISK),
        vdevs=int(node.kind is Kind.VDEV),
        spares=int(node.role is Role.SPARE),
    )


def node_labels(node: DeviceNode) -> dict[str, str]:
    return {'device_name': node.name, 'device_type': node.kind.value, 'pool': node.pool_name}


def node_samples(node: DeviceNode, tally: Tally | None = None) -> list[MetricSample]:
    labels = node_labels(node)
    samples = [MetricSample('zfs_health', {**labels, 'state': health.value}, float(node.health is health))
               for health in Health]
    samples.extend(MetricSample(name, labels, float(getattr(node, field))) for name, field in ERROR_FIELDS)

    if tally is not None and node.kind is not Kind.DISK:
        samples.append(MetricSample('zfs_disk_count', labels, float(tally.disks)))
        samples.append(MetricSample('zfs_vdev_count', labels, float(tally.vdevs)))
        samples.append(MetricSample('zfs_spare_count', labels, float(tally.spares)))

    for name, field in OPTIONAL_FIELDS:
        value = getattr(node, field)
        if value is not None:
            samples.append(MetricSample(name, labels, float(value)))
    return samples


def map_to_samples(pools: list[DeviceNode]) -> list[MetricSample]:
    """Flatten the pool trees into samples, depth-first pre-order.

    An active hot spare is listed twice by zpool status, once in its spare-N vdev
    and once under spares. Only its first occurrence is exported so every device
    maps to exactly one set of series.
    """
    samples = []
    seen = set()
    for pool in pools:
        tallies: dict[int, Tally] = {}
        _tally(pool, tallies)
        for node in pool.walk():
            identity = tuple(node_labels(node).values())
            if identity in seen:
                logger.debug('Skipping repeated device %s in pool %s', node.name, node.pool_name)
                continue
            seen.add(identity)
            samples.extend(node_samples(node, tallies[id(node)]))
    return samples
