from nrega_pipeline.sources.base import BaseSource
from nrega_pipeline.sources.datagov import DataGovSource, RecordFilters

__all__ = ["BaseSource", "DataGovSource", "RecordFilters"]
