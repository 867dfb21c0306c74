"""Engine components orchestrating plan → fetch → classify → persist."""

from .fetcher import FetchResponse, Fetcher
from .jobs import FetchJob, JobGenerator, format_identifier, parse_identifier
from .parser import FlatFileRecord, HeaderRecord, Malformed, NotFound, ParseResult, RecordParser
from .persister import OutcomeKind, PersistOutcome, RecordPersister
from .planner import RangePlanner
from .worker_pool import WorkerPool

__all__ = [
    "FetchJob",
    "FetchResponse",
    "Fetcher",
    "FlatFileRecord",
    "HeaderRecord",
    "JobGenerator",
    "Malformed",
    "NotFound",
    "OutcomeKind",
    "ParseResult",
    "PersistOutcome",
    "RangePlanner",
    "RecordParser",
    "RecordPersister",
    "WorkerPool",
    "format_identifier",
    "parse_identifier",
]
