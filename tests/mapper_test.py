from collections import Counter
from pathlib import Path

import pytest

from zfs_promexporter.mapper import METRICS, map_to_samples
from zfs_promexporter.model import Health, Kind
from zfs_promexporter.sizes import enrich_sizes
from zfs_promexporter.topology import parse_topology

FIXTURES = Path(__file__).parent.joinpath('fixtures')

TANK_MIRROR = (
    '  pool: tank\n'
    ' state: ONLINE\n'
    'config:\n'
    '\n'
    '\tNAME        STATE     READ WRITE CKSUM\n'
    '\ttank        ONLINE       0     0     0\n'
    '\t  mirror-0  ONLINE       0     0     0\n'
    '\t    sda     ONLINE       0     0     0\n'
    '\t    sdb     ONLINE       0     0     0\n'
    '\n'
    'errors: No known data errors\n'
)

TANK_SIZES = (
    'tank\t1992864825344\t1099511627776\t893353197568\n'
    'mirror-0\t1992864825344\t1099511627776\t893353197568\n'
    'sda\t2000398934016\t-\t-\n'
    'sdb\t2000398934016\t-\t-\n'
)


def fixture_pools():
    return [pool
            for name in ('zpool_status_-p', 'zpool_status_-p_degraded_spare', 'zpool_status_-p_logs',
                         'zpool_status_resilvering')
            for pool in parse_topology(FIXTURES.joinpath(name).read_text())]


def value(samples, name, device_name, **labels):
    matches = [sample.value for sample in samples
               if sample.name == name and sample.labels['device_name'] == device_name
               and labels.items() <= sample.labels.items()]
    assert len(matches) == 1, matches
    return matches[0]


def exposition(samples):
    lines = []
    for sample in samples:
        labels = ','.join(f'{k}="{v}"' for k, v in sample.labels.items())
        lines.append(f'{sample.name}{{{labels}}} {sample.value}')
    return lines


@pytest.fixture
def golden(request, golden):
    return golden.open(f"golden/{request.node.name}.yml")


def test_map_to_samples_tank_mirror():
    pools = parse_topology(TANK_MIRROR)
    enrich_sizes(pools, TANK_SIZES)

    samples = map_to_samples(pools)

    nodes = {(sample.labels['device_name'], sample.labels['device_type']) for sample in samples}
    assert nodes == {('tank', 'pool'), ('mirror-0', 'vdev'), ('sda', 'disk'), ('sdb', 'disk')}
    assert value(samples, 'zfs_disk_count', 'tank') == 2
    assert value(samples, 'zfs_vdev_count', 'tank') == 1
    assert value(samples, 'zfs_spare_count', 'tank') == 0
    assert value(samples, 'zfs_disk_count', 'mirror-0') == 2
    assert value(samples, 'zfs_vdev_count', 'mirror-0') == 0
    assert value(samples, 'zfs_capacity', 'tank') == 1099511627776
    assert value(samples, 'zfs_raw_size', 'sda') == 2000398934016
    for device_name, _ in nodes:
        health = [sample.value for sample in samples
                  if sample.name == 'zfs_health' and sample.labels['device_name'] == device_name]
        assert sorted(health) == [0, 0, 0, 0, 0, 0, 1]
        assert value(samples, 'zfs_health', device_name, state='online') == 1


def test_map_to_samples_snapshot(golden):
    pools = parse_topology(
        'NAME        STATE     READ WRITE CKSUM\n'
        'boot        ONLINE       0     0     0\n'
        '  sda       ONLINE       0     0     2\n'
    )
    enrich_sizes(pools, (
        'boot\t1000\t600\t400\n'
        'sda\t1024\t-\t-\n'
        'boot\t600\t400\t3\t5\t4096\t8192\n'
        'sda\t-\t-\t3\t5\t4096\t8192\n'
    ))

    assert exposition(map_to_samples(pools)) == golden["output"]


def test_map_to_samples_is_deterministic():
    assert map_to_samples(fixture_pools()) == map_to_samples(fixture_pools())


def test_map_to_samples_one_hot_health():
    samples = map_to_samples(fixture_pools())

    health = Counter()
    online = Counter()
    for sample in samples:
        if sample.name == 'zfs_health':
            key = (sample.labels['pool'], sample.labels['device_name'])
            health[key] += 1
            online[key] += sample.value

    assert set(health.values()) == {len(Health)}
    assert set(online.values()) == {1}


def test_map_to_samples_disk_count_matches_tree():
    pools = fixture_pools()
    samples = map_to_samples(pools)

    for pool in pools:
        disks = sum(1 for node in pool.walk() if node.kind is Kind.DISK)
        assert value(samples, 'zfs_disk_count', pool.name) == disks


def test_map_to_samples_faulted_disk():
    samples = map_to_samples(parse_topology(FIXTURES.joinpath('zpool_status_-p_degraded_spare').read_text()))
    disk = 'pci-0000:00:0d.0-scsi-12:0:0:0-part1'

    assert value(samples, 'zfs_health', disk, state='faulted') == 1
    assert value(samples, 'zfs_health', disk, state='online') == 0
    assert value(samples, 'zfs_read_errors', disk) == 7
    assert value(samples, 'zfs_write_errors', disk) == 2
    assert value(samples, 'zfs_checksum_errors', disk) == 0
    assert value(samples, 'zfs_spare_count', 'test') == 3
    assert value(samples, 'zfs_vdev_count', 'test') == 3
    assert value(samples, 'zfs_disk_count', 'spare-0') == 2


def test_map_to_samples_exports_active_spare_once():
    samples = map_to_samples(parse_topology(FIXTURES.joinpath('zpool_status_resilvering').read_text()))

    assert value(samples, 'zfs_health', 'sdf', state='online') == 1
    assert value(samples, 'zfs_disk_count', 'tank') == 7
    assert value(samples, 'zfs_spare_count', 'tank') == 2
    assert value(samples, 'zfs_read_errors', 'sdb') == 1536


def test_map_to_samples_labels_are_stable_per_node():
    samples = map_to_samples(fixture_pools())

    labels = {}
    for sample in samples:
        common = {k: v for k, v in sample.labels.items() if k != 'state'}
        key = (common['pool'], common['device_name'])
        assert labels.setdefault(key, common) == common
        assert set(common) == {'device_name', 'device_type', 'pool'}
        assert sample.name in METRICS


def test_map_to_samples_skips_absent_fields():
    samples = map_to_samples(parse_topology(TANK_MIRROR))

    assert {sample.name for sample in samples} == {
        'zfs_health', 'zfs_read_errors', 'zfs_write_errors', 'zfs_checksum_errors',
        'zfs_disk_count', 'zfs_vdev_count', 'zfs_spare_count',
    }
    assert not [sample for sample in samples
                if sample.labels['device_type'] == 'disk' and sample.name.endswith('_count')]


def test_map_to_samples_empty():
    assert map_to_samples([]) == []
