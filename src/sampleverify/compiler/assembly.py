"""
Source assembly shared by compiler adapters.

Flattens a CompilationUnit into a list of concrete sources: include files
as-is, region buffers injected between the matching region markers of their
file, and everything else as standalone sources.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from sampleverify.config.models import BufferId, CompilationUnit, WorkspaceBuffer
from sampleverify.regions import replace_region

logger = logging.getLogger(__name__)


@dataclass
class AssembledSource:
    """One source handed to a compiler."""

    name: str
    text: str
    path: Path | None = None
    editable: bool = False  # True once any editable buffer contributed to it


def _read_base(path: Path, sources: dict[str, AssembledSource]) -> str | None:
    key = str(path)
    if key in sources:
        return sources[key].text
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Unable to read region host {path}: {e}")
        return None


def _join(first: str, second: str) -> str:
    separator = "" if first.endswith("\n") or not first else "\n"
    return first + separator + second


def _add(sources: dict[str, AssembledSource], name: str, path: Path | None, buffer: WorkspaceBuffer):
    existing = sources.get(name)
    if existing is None:
        sources[name] = AssembledSource(name=name, text=buffer.content, path=path, editable=buffer.editable)
        return
    existing.text = _join(existing.text, buffer.content)
    existing.editable = existing.editable or buffer.editable


def merge_region_buffers(buffers: tuple[WorkspaceBuffer, ...]) -> list[WorkspaceBuffer]:
    """Combine buffers that target the same file region into one buffer.

    Read-only content comes first, followed by the editable samples, each in
    their original order. The merged buffer is editable when any part is.
    Buffers without a region are returned unchanged.
    """
    grouped: dict[BufferId, list[WorkspaceBuffer]] = {}
    order: list[BufferId | WorkspaceBuffer] = []

    for buffer in buffers:
        if buffer.id.path is None or not buffer.id.region:
            order.append(buffer)
            continue
        if buffer.id not in grouped:
            grouped[buffer.id] = []
            order.append(buffer.id)
        grouped[buffer.id].append(buffer)

    merged: list[WorkspaceBuffer] = []
    for item in order:
        if isinstance(item, WorkspaceBuffer):
            merged.append(item)
            continue
        parts = grouped[item]
        if len(parts) == 1:
            merged.append(parts[0])
            continue
        content = ""
        for part in [p for p in parts if not p.editable] + [p for p in parts if p.editable]:
            content = _join(content, part.content)
        merged.append(
            WorkspaceBuffer(id=item, content=content, editable=any(p.editable for p in parts))
        )
    return merged


def assemble_sources(unit: CompilationUnit) -> list[AssembledSource]:
    """Assemble the unit's files and buffers into compiler-ready sources."""
    sources: dict[str, AssembledSource] = {}

    for include in unit.files:
        sources[str(include.path)] = AssembledSource(
            name=str(include.path), text=include.content, path=include.path
        )

    sample_count = 0
    for buffer in merge_region_buffers(unit.buffers):
        path = buffer.id.path
        region = buffer.id.region

        if path is not None and region:
            base = _read_base(path, sources)
            if base is not None:
                replaced = replace_region(base, region, buffer.content)
                if replaced is not None:
                    previous = sources.get(str(path))
                    sources[str(path)] = AssembledSource(
                        name=str(path),
                        text=replaced,
                        path=path,
                        editable=buffer.editable or (previous is not None and previous.editable),
                    )
                    continue
            logger.debug(f"Region {region!r} has no markers in {path}; compiling it standalone")
            _add(sources, f"{path}@{region}", path, buffer)
        elif path is not None:
            _add(sources, str(path), path, buffer)
        else:
            sample_count += 1
            _add(sources, f"<sample {sample_count}>", None, buffer)

    return list(sources.values())
