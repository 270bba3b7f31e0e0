"""
Session aggregation and compilation unit assembly.

Groups document fragments into sessions, merges read-only fragments into
shared includes, and builds one compilation unit per session.
"""

from sampleverify.sessions.aggregator import SessionAggregator, SessionGroup
from sampleverify.sessions.includes import (
    GLOBAL_SCOPE,
    IncludeCollector,
    IncludeSnapshot,
    include_scope,
)
from sampleverify.sessions.workspace import WorkspaceBuilder

__all__ = [
    "GLOBAL_SCOPE",
    "IncludeCollector",
    "IncludeSnapshot",
    "SessionAggregator",
    "SessionGroup",
    "WorkspaceBuilder",
    "include_scope",
]
