"""
Compilation unit assembly for a session.
"""

import logging

from sampleverify.config.models import (
    BufferId,
    CodeFragment,
    CompilationUnit,
    WorkspaceBuffer,
)
from sampleverify.sessions.aggregator import SessionGroup
from sampleverify.sessions.includes import GLOBAL_SCOPE, IncludeSnapshot, include_scope

logger = logging.getLogger(__name__)


def buffer_for(fragment: CodeFragment) -> WorkspaceBuffer:
    """Turn an editable fragment into a workspace buffer."""
    options = fragment.options
    return WorkspaceBuffer(
        id=BufferId(path=options.destination_file or options.source_file, region=options.region),
        content=fragment.source_text,
        editable=True,
    )


class WorkspaceBuilder:
    """Combines a session's editable fragments with its include snapshot."""

    def build(self, group: SessionGroup, includes: IncludeSnapshot) -> CompilationUnit:
        buffers = [buffer_for(f) for f in group.editable_fragments]
        files = list(includes.files_for(GLOBAL_SCOPE))

        # A blank session key only sees the global scope
        has_session_scope = group.key is not None and bool(group.key.strip())
        session_scope = include_scope(group.key)

        if has_session_scope:
            files.extend(includes.files_for(session_scope))

        buffers.extend(includes.buffers_for(GLOBAL_SCOPE))
        if has_session_scope:
            buffers.extend(includes.buffers_for(session_scope))

        unit = CompilationUnit(
            session=group.key,
            project=group.project,
            buffers=tuple(buffers),
            files=tuple(files),
        )
        logger.debug(
            f"Built unit for session {group.key!r}: {len(unit.buffers)} buffer(s), "
            f"{len(unit.files)} file(s)"
        )
        return unit
