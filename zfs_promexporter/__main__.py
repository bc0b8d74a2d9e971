#!/usr/bin/env python3
"""
ZFS pool metrics exporter for Prometheus.

Serves pool, vdev and disk health, error counters, capacity and throughput on
/metrics, or prints them once for the node_exporter textfile collector.
"""

import argparse
import logging
import sys
import time

from prometheus_client import CollectorRegistry, generate_latest, start_http_server
from prometheus_client.registry import Collector

from . import __version__
from .collector import ExporterConfig, ZpoolCollector

logger = logging.getLogger(__name__)

LOG_LEVELS = ('debug', 'info', 'warning', 'error', 'critical')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='zfs-promexporter',
        description=__doc__,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('-b', '--bind-address', default='0.0.0.0', help='Address to listen on')
    parser.add_argument('-p', '--port', default=8080, type=int, help='Port to listen on')
    parser.add_argument('--log-level', default='info', choices=LOG_LEVELS, type=str.lower,
                        help='Lowest level of log messages to print')
    parser.add_argument('-t', '--timeout', default=ExporterConfig.timeout, type=float,
                        help='Seconds to wait for each zpool command')
    parser.add_argument('--zpool', default=ExporterConfig.zpool, help='Path to the zpool binary')
    parser.add_argument('--once', action='store_true',
                        help='Print the metrics once to stdout and exit, for the textfile collector')
    parser.add_argument('--version', action='version', version='%(prog)s {0}'.format(__version__))
    return parser.parse_args(argv)


class _Snapshot(Collector):
    def __init__(self, families):
        self.families = families

    def collect(self):
        return self.families


def scrape_once(collector: ZpoolCollector) -> int:
    families = list(collector.collect())
    registry = CollectorRegistry()
    registry.register(_Snapshot(families))
    print(generate_latest(registry).decode(), end='')

    success = next(family for family in families if family.name == 'zfs_exporter_scrape_success')
    return 0 if success.samples[0].value == 1 else 1


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(format='%(asctime)s %(threadName)s %(levelname)s: %(message)s',
                        level=getattr(logging, args.log_level.upper()))

    collector = ZpoolCollector(ExporterConfig(zpool=args.zpool, timeout=args.timeout))
    if args.once:
        return scrape_once(collector)

    registry = CollectorRegistry()
    registry.register(collector)
    start_http_server(args.port, addr=args.bind_address, registry=registry)
    logger.info('Serving zpool metrics on %s:%d', args.bind_address, args.port)

    while True:
        time.sleep(60)


if __name__ == '__main__':
    sys.exit(main())
