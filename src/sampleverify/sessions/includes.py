"""
Include collection.

Merges the source text of read-only fragments into shared include content,
keyed by scope (``global`` or a session id) and destination. Whole-file
includes and named-region includes are accumulated separately. Within one
destination, content is concatenated in document order, each fragment's
text followed by a newline.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from sampleverify.config.models import (
    BufferId,
    CodeFragment,
    IncludeFile,
    WorkspaceBuffer,
)

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"
DEFAULT_INCLUDE_PREFIX = "generated_include_file_"


def include_scope(session: str | None) -> str:
    """Map a declared session value to its include scope key.

    Blank sessions share the ``global`` scope. Scope keys compare
    case-insensitively.
    """
    if session is None or not session.strip():
        return GLOBAL_SCOPE
    return session.casefold()


@dataclass(frozen=True)
class IncludeFileKey:
    scope: str
    path: Path


@dataclass(frozen=True)
class IncludeRegionKey:
    scope: str
    path: Path
    region: str


@dataclass(frozen=True)
class IncludeSnapshot:
    """Immutable result of include collection for one document."""

    files: Mapping[IncludeFileKey, IncludeFile]
    regions: Mapping[IncludeRegionKey, WorkspaceBuffer]

    def files_for(self, scope: str) -> tuple[IncludeFile, ...]:
        return tuple(f for key, f in self.files.items() if key.scope == scope)

    def buffers_for(self, scope: str) -> tuple[WorkspaceBuffer, ...]:
        return tuple(b for key, b in self.regions.items() if key.scope == scope)

    def scopes(self) -> list[str]:
        seen: dict[str, None] = {}
        for key in list(self.files) + list(self.regions):
            seen.setdefault(key.scope, None)
        return list(seen)


class IncludeCollector:
    """Accumulates read-only fragments into include files and region buffers."""

    def __init__(self, root: Path, include_file_suffix: str = ".py"):
        self.root = Path(root)
        self.include_file_suffix = include_file_suffix

    def default_destination(self, scope: str) -> Path:
        return (self.root / f"{DEFAULT_INCLUDE_PREFIX}{scope}{self.include_file_suffix}").resolve()

    def collect(self, fragments: Iterable[CodeFragment]) -> IncludeSnapshot:
        """Build the include snapshot from the read-only fragments of a document.

        Editable fragments are skipped: they go into the compilation unit
        directly.
        """
        file_parts: dict[IncludeFileKey, list[str]] = {}
        region_parts: dict[IncludeRegionKey, list[str]] = {}

        for fragment in fragments:
            if fragment.editable:
                continue

            scope = include_scope(fragment.options.session)
            destination = fragment.options.destination_file or self.default_destination(scope)
            destination = Path(destination).resolve()
            region = fragment.options.region

            if region is None or not region.strip():
                file_key = IncludeFileKey(scope=scope, path=destination)
                file_parts.setdefault(file_key, []).append(fragment.source_text + "\n")
            else:
                region_key = IncludeRegionKey(scope=scope, path=destination, region=region)
                region_parts.setdefault(region_key, []).append(fragment.source_text + "\n")

        files = {
            key: IncludeFile(path=key.path, content="".join(parts))
            for key, parts in file_parts.items()
        }
        regions = {
            key: WorkspaceBuffer(
                id=BufferId(path=key.path, region=key.region),
                content="".join(parts),
                editable=False,
            )
            for key, parts in region_parts.items()
        }

        logger.debug(
            f"Collected {len(files)} include file(s) and {len(regions)} region include(s)"
        )
        return IncludeSnapshot(files=MappingProxyType(files), regions=MappingProxyType(regions))
