import logging
import time
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from . import runner
from .errors import ZpoolError
from .mapper import METRICS, map_to_samples
from .model import MetricSample
from .sizes import enrich_sizes
from .topology import parse_topology

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExporterConfig:
    zpool: str = 'zpool'
    timeout: float = runner.DEFAULT_TIMEOUT


def metric_families(samples: list[MetricSample]) -> list[GaugeMetricFamily]:
    # Gauges keep the exported names exact, counter families would append _total.
    families: dict[str, GaugeMetricFamily] = {}
    for sample in samples:
        family = families.get(sample.name)
        if family is None:
            family = families[sample.name] = GaugeMetricFamily(
                sample.name, METRICS[sample.name], labels=list(sample.labels))
        family.add_metric(list(sample.labels.values()), sample.value)
    return list(families.values())


class ZpoolCollector(Collector):
    """Runs the whole zpool pipeline on every collect() call.

    Nothing but the read-only config is shared between calls, so concurrent
    scrapes served by the HTTP server threads never see each other's data.
    """

    def __init__(self, config: ExporterConfig = ExporterConfig()):
        self.config = config

    def scrape(self) -> list[MetricSample]:
        pools = parse_topology(runner.zpool_status(self.config.zpool, self.config.timeout))
        if pools:
            enrich_sizes(pools, runner.zpool_sizes(self.config.zpool, self.config.timeout))
        return map_to_samples(pools)

    def collect(self):
        start = time.monotonic()
        try:
            samples = self.scrape()
        except ZpoolError as e:
            logger.exception(f'Caught exception while collecting zpool metrics: {e}')
            samples = None
        duration = time.monotonic() - start

        if samples is not None:
            yield from metric_families(samples)

        yield GaugeMetricFamily('zfs_exporter_scrape_success',
                                'Whether the last collection of zpool metrics succeeded',
                                value=float(samples is not None))
        yield GaugeMetricFamily('zfs_exporter_scrape_duration_seconds',
                                'Time spent collecting zpool metrics',
                                value=duration)
