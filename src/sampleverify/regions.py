"""
Named region markers inside source files.

A region is delimited by comment lines of the form ``#region <name>`` and
``#endregion`` (``//`` comments are accepted as well).
"""

import re

REGION_START_PATTERN = re.compile(r"^\s*(?:#|//)\s*region\s+(?P<name>\S+)\s*$")
REGION_END_PATTERN = re.compile(r"^\s*(?:#|//)\s*endregion\b")


def find_region(text: str, name: str) -> tuple[int, int] | None:
    """Return the (start marker, end marker) line indices of a region, or None."""
    lines = text.splitlines()
    start = None
    depth = 0
    for idx, line in enumerate(lines):
        start_match = REGION_START_PATTERN.match(line)
        if start is None:
            if start_match and start_match.group("name") == name:
                start = idx
            continue
        if start_match:
            depth += 1
        elif REGION_END_PATTERN.match(line):
            if depth == 0:
                return start, idx
            depth -= 1
    return None


def extract_region(text: str, name: str) -> str | None:
    """Return the body of a named region, or None if the region is absent."""
    bounds = find_region(text, name)
    if bounds is None:
        return None
    start, end = bounds
    return "\n".join(text.splitlines()[start + 1:end])


def replace_region(text: str, name: str, body: str) -> str | None:
    """Return ``text`` with the body of the named region replaced, or None if absent."""
    bounds = find_region(text, name)
    if bounds is None:
        return None
    start, end = bounds
    lines = text.splitlines()
    new_lines = lines[:start + 1] + body.rstrip("\n").split("\n") + lines[end:]
    result = "\n".join(new_lines)
    if text.endswith("\n"):
        result += "\n"
    return result
