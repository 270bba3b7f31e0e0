"""
Markdown fragment stream.

Scans Markdown documents for fenced code blocks annotated with verification
options and turns them into CodeFragment records.

An annotated fence looks like::

    ```python --session intro --region setup --source-file ./src/app.py

Only fences whose info string carries at least one ``--`` option are
treated as fragments. Problems with the declared options never raise; they
are attached to the fragment as linkage diagnostics.
"""

import fnmatch
import logging
import re
import shlex
from pathlib import Path
from typing import Iterator

from sampleverify.config.models import (
    CodeFragment,
    Diagnostic,
    DocumentConfig,
    FragmentOptions,
)
from sampleverify.regions import extract_region

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")

VALUE_OPTIONS = (
    "--session",
    "--project",
    "--package",
    "--destination-file",
    "--region",
    "--source-file",
)
EDITABLE_OPTION = "--editable"


class DocumentReadError(Exception):
    """Raised when a document cannot be read or decoded."""

    pass


def read_text(path: Path) -> str:
    """Read text with a consistent encoding for reproducible parsing."""
    return path.read_text(encoding="utf-8")


def discover_documents(config: DocumentConfig) -> list[Path]:
    """Find all documents under the configured root, in sorted order."""
    root = Path(config.root)
    if not root.is_dir():
        logger.warning(f"Document root does not exist or is not a directory: {root}")
        return []

    found: set[Path] = set()
    for pattern in config.patterns:
        for path in root.rglob(pattern):
            if not path.is_file():
                continue
            relative_parts = path.relative_to(root).parts[:-1]
            if any(
                fnmatch.fnmatch(part, excluded)
                for part in relative_parts
                for excluded in config.exclude_patterns
            ):
                continue
            found.add(path.resolve())

    documents = sorted(found)
    logger.debug(f"Discovered {len(documents)} document(s) under {root}")
    return documents


def parse_fence_info(info: str) -> tuple[str, dict[str, str], list[Diagnostic]]:
    """Parse a fence info string into language, raw option values, and diagnostics."""
    diagnostics: list[Diagnostic] = []
    try:
        tokens = shlex.split(info)
    except ValueError as e:
        return "", {}, [Diagnostic(message=f"Unable to parse options '{info}': {e}")]

    language = ""
    if tokens and not tokens[0].startswith("--"):
        language = tokens.pop(0)

    values: dict[str, str] = {}
    idx = 0
    while idx < len(tokens):
        token = tokens[idx]
        idx += 1

        if not token.startswith("--"):
            diagnostics.append(Diagnostic(message=f"Unrecognized argument: {token}"))
            continue

        name, has_inline_value, inline_value = token.partition("=")

        if name == EDITABLE_OPTION:
            if has_inline_value:
                values[name] = inline_value
            elif idx < len(tokens) and tokens[idx].lower() in ("true", "false"):
                values[name] = tokens[idx]
                idx += 1
            else:
                values[name] = "true"
            continue

        if name not in VALUE_OPTIONS:
            diagnostics.append(Diagnostic(message=f"Unrecognized option: {name}"))
            continue

        if has_inline_value:
            values[name] = inline_value
        elif idx < len(tokens) and not tokens[idx].startswith("--"):
            values[name] = tokens[idx]
            idx += 1
        else:
            diagnostics.append(Diagnostic(message=f"Option {name} requires a value"))

    return language, values, diagnostics


def is_annotated(info: str) -> bool:
    """Return True when a fence info string declares verification options."""
    return any(part.startswith("--") for part in info.split())


class FragmentStream:
    """Yields the annotated code fragments of one document in document order."""

    def __init__(self, document: Path, root: Path):
        self.document = Path(document)
        self.root = Path(root)

    def __iter__(self) -> Iterator[CodeFragment]:
        return iter(self.fragments())

    def fragments(self) -> list[CodeFragment]:
        """Parse the document and return its annotated fragments."""
        try:
            lines = read_text(self.document).splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentReadError(f"Unable to read document {self.document}: {e}") from e
        fragments: list[CodeFragment] = []

        in_code = False
        fence = ""
        info = ""
        start_line = 0
        content_lines: list[str] = []

        for idx, line in enumerate(lines):
            if not in_code:
                match = FENCE_PATTERN.match(line)
                if match and not (match.group("fence")[0] == "`" and "`" in match.group("info")):
                    in_code = True
                    fence = match.group("fence")
                    info = match.group("info").strip()
                    start_line = idx
                    content_lines = []
                continue

            stripped = line.strip()
            if stripped.startswith(fence[0] * len(fence)) and not stripped.strip(fence[0]):
                in_code = False
                if is_annotated(info):
                    fragments.append(self._build_fragment(start_line, info, content_lines))
            else:
                content_lines.append(line)

        if in_code:
            logger.warning(f"{self.document}:{start_line + 1}: unterminated code fence")

        logger.debug(f"{self.document}: {len(fragments)} annotated fragment(s)")
        return fragments

    def _build_fragment(self, line: int, info: str, content_lines: list[str]) -> CodeFragment:
        language, values, diagnostics = parse_fence_info(info)
        source_text = "\n".join(content_lines)

        editable = True
        if EDITABLE_OPTION in values:
            raw = values[EDITABLE_OPTION].lower()
            if raw in ("true", "false"):
                editable = raw == "true"
            else:
                diagnostics.append(
                    Diagnostic(message=f"Invalid value for --editable: {values[EDITABLE_OPTION]}")
                )

        project_or_package = None
        if "--project" in values and "--package" in values:
            diagnostics.append(Diagnostic(message="Cannot specify both --project and --package"))
        if "--project" in values:
            project_path = self._resolve_local(values["--project"])
            project_or_package = str(project_path)
            if not project_path.exists():
                diagnostics.append(Diagnostic(message=f"Project not found: {project_path}"))
        elif "--package" in values:
            project_or_package = values["--package"]

        region = values.get("--region")

        source_file = None
        if "--source-file" in values:
            source_file = self._resolve_local(values["--source-file"])
            if not source_file.is_file():
                diagnostics.append(Diagnostic(message=f"File not found: {source_file}"))
            else:
                file_text = self._read_source(source_file, region, diagnostics)
                if file_text is not None:
                    source_text = file_text

        destination_file = None
        if "--destination-file" in values:
            destination_file = (self.root / values["--destination-file"]).resolve()

        options = FragmentOptions(
            session=values.get("--session"),
            editable=editable,
            project_or_package=project_or_package,
            destination_file=destination_file,
            region=region,
            source_file=source_file,
        )

        for diagnostic in diagnostics:
            logger.debug(f"{self.document}:{line + 1}: {diagnostic}")

        return CodeFragment(
            document=self.document,
            line=line,
            language=language,
            source_text=source_text,
            options=options,
            linkage_diagnostics=tuple(diagnostics),
        )

    def _read_source(self, source_file: Path, region: str | None, diagnostics: list[Diagnostic]) -> str | None:
        """Return the source file text (or its region body); record a diagnostic on failure."""
        try:
            file_text = read_text(source_file)
        except (OSError, UnicodeDecodeError) as e:
            diagnostics.append(Diagnostic(message=f"Unable to read file {source_file}: {e}"))
            return None

        if not region:
            return file_text

        region_text = extract_region(file_text, region)
        if region_text is None:
            diagnostics.append(Diagnostic(message=f"Region \"{region}\" not found in file {source_file}"))
        return region_text

    def _resolve_local(self, value: str) -> Path:
        return (self.document.parent / value).resolve()
