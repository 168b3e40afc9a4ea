from .service import UNCLASSIFIED_SOURCE, AttributionAggregator, resolve_source

__all__ = ["AttributionAggregator", "UNCLASSIFIED_SOURCE", "resolve_source"]
