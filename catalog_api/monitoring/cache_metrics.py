"""
List Cache Metrics

Prometheus counters and histograms for the read-through list cache.
Every series is labeled with the cache namespace of the list view.
"""

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class ListCacheMetrics:
    """Prometheus instruments for list cache reads, writes and invalidations."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

        self.hits = Counter(
            "catalog_list_cache_hits_total",
            "List pages served from cache",
            ["namespace"],
            registry=self.registry,
        )
        self.misses = Counter(
            "catalog_list_cache_misses_total",
            "List pages computed because no cached page was found",
            ["namespace"],
            registry=self.registry,
        )
        self.unavailable = Counter(
            "catalog_list_cache_unavailable_total",
            "Cache operations skipped because the backing store was unreachable",
            ["namespace", "operation"],
            registry=self.registry,
        )
        self.populate_failures = Counter(
            "catalog_list_cache_populate_failures_total",
            "Computed pages that could not be written back to the cache",
            ["namespace"],
            registry=self.registry,
        )
        self.invalidations = Counter(
            "catalog_list_cache_invalidations_total",
            "Prefix invalidation sweeps completed",
            ["namespace"],
            registry=self.registry,
        )
        self.invalidation_failures = Counter(
            "catalog_list_cache_invalidation_failures_total",
            "Prefix invalidation sweeps that failed",
            ["namespace"],
            registry=self.registry,
        )
        self.fetch_duration = Histogram(
            "catalog_list_fetch_duration_seconds",
            "Time spent computing a list page from the system of record",
            ["namespace"],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=self.registry,
        )


# Global metrics instance registered with the default Prometheus registry
list_cache_metrics = ListCacheMetrics()
