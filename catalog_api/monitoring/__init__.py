"""
Catalog Monitoring Module

Prometheus instruments for the list cache.
"""

from .cache_metrics import ListCacheMetrics, list_cache_metrics

__all__ = ["ListCacheMetrics", "list_cache_metrics"]
