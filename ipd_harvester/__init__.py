"""Incremental harvester for IPD allele records."""

__version__ = "0.1.0"
