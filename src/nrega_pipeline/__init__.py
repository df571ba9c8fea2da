"""
nrega_pipeline — data.gov.in MGNREGA ingestion for nrega-pulse.

Usage:
    from nrega_pipeline.sources.datagov import DataGovSource
    from nrega_pipeline.transforms.normalize import normalize_record
    from nrega_pipeline.transforms.indicators import compute_indicators
    from nrega_pipeline.pipelines.district_sync import run
"""

__version__ = "0.1.0"
