"""Infra layer utilities (retry policy, index storage)."""

from .retry import RetryPolicy
from .storage import IndexStore

__all__ = ["IndexStore", "RetryPolicy"]
