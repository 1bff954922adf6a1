"""
Upstream registries: declarative configs, the catalog, and the generic adapter.
"""

from ingestion.sources.adapter import SourceAdapter, GenericSourceAdapter, build_adapter
from ingestion.sources.catalog import SOURCE_CATALOG, get_source_config, list_source_names

__all__ = [
    "SourceAdapter",
    "GenericSourceAdapter",
    "build_adapter",
    "SOURCE_CATALOG",
    "get_source_config",
    "list_source_names",
]
