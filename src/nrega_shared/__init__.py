"""
nrega_shared — shared settings, models, storage access and helpers for nrega-pulse.

Usage:
    from nrega_shared.config import settings
    from nrega_shared.db import get_supabase_client
    from nrega_shared.models import PerformanceRecord, District, State
    from nrega_shared.cache_store import CacheStore
    from nrega_shared.time_utils import current_financial_year, fy_month_index
"""

__version__ = "0.1.0"
