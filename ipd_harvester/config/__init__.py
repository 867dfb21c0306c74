"""Configuration package exports."""

from .databases import DatabaseEndpoint, lookup_database, supported_codes
from .loader import ConfigLocator, ConfigRepository, harvester_home
from .models import CUTOFF_FORMAT, MAX_RECORD_NUMBER, GlobalConfig, HarvestRequest, RetryConfig

__all__ = [
    "CUTOFF_FORMAT",
    "ConfigLocator",
    "ConfigRepository",
    "DatabaseEndpoint",
    "GlobalConfig",
    "HarvestRequest",
    "MAX_RECORD_NUMBER",
    "RetryConfig",
    "harvester_home",
    "lookup_database",
    "supported_codes",
]
