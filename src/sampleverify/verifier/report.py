"""
Verification report generation.

Each reporting step returns immutable ReportLine records (kind, text,
severity). A single stateless ReportFormatter renders them at the end, so no
console color state is shared between steps.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

import orjson
from rich.console import Console

from sampleverify.config.models import CodeFragment, Verdict, VerdictKind
from sampleverify.sessions.aggregator import SessionGroup

SUCCESS_SYMBOL = "✓"
FAILURE_SYMBOL = "X"
UNKNOWN = "UNKNOWN"


class LineKind(str, Enum):
    """What a report line describes."""

    BLANK = "blank"
    DOCUMENT = "document"
    UNDERLINE = "underline"
    CHECKING = "checking"
    FRAGMENT = "fragment"
    DIAGNOSTIC = "diagnostic"
    SESSION_ERROR = "session_error"
    SESSION_HEADER = "session_header"
    VERDICT = "verdict"
    DOCUMENT_ERROR = "document_error"
    NO_INPUT = "no_input"


class LineSeverity(str, Enum):
    PLAIN = "plain"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ReportLine:
    kind: LineKind
    text: str
    severity: LineSeverity = LineSeverity.PLAIN


BLANK_LINE = ReportLine(LineKind.BLANK, "")


class RunStatus:
    """Run-level failure flag. Only ever escalates."""

    def __init__(self):
        self._failed = False

    @property
    def failed(self) -> bool:
        return self._failed

    def fail(self):
        self._failed = True


@dataclass
class SessionReport:
    """A session group and its verdict (None when compilation was skipped)."""

    group: SessionGroup
    verdict: Verdict | None = None


@dataclass
class DocumentReport:
    document: Path
    sessions: list[SessionReport] = field(default_factory=list)
    error: str | None = None  # Set when the document itself could not be read


class ReportGenerator:
    """Builds report lines for documents and escalates the run status."""

    def __init__(self, status: RunStatus | None = None):
        self.status = status or RunStatus()

    def no_input_lines(self, root: Path) -> list[ReportLine]:
        self.status.fail()
        return [ReportLine(LineKind.NO_INPUT, f"No markdown files found under {root}", LineSeverity.ERROR)]

    def document_lines(self, report: DocumentReport) -> list[ReportLine]:
        name = str(report.document)
        lines = [
            BLANK_LINE,
            ReportLine(LineKind.DOCUMENT, name),
            ReportLine(LineKind.UNDERLINE, "-" * len(name)),
        ]
        if report.error:
            self.status.fail()
            lines.append(ReportLine(LineKind.DOCUMENT_ERROR, f"  {report.error}", LineSeverity.ERROR))
        for session in report.sessions:
            lines.extend(self.session_lines(session))
        return lines

    def session_lines(self, session: SessionReport) -> list[ReportLine]:
        group = session.group
        lines: list[ReportLine] = []

        for fragment in group.fragments:
            lines.extend(self.fragment_lines(fragment))

        if not group.valid:
            self.status.fail()
            lines.append(ReportLine(LineKind.SESSION_ERROR, f"  {group.error}", LineSeverity.ERROR))
            return lines

        if group.has_linkage_errors or session.verdict is None:
            return lines

        lines.extend(self.verdict_lines(group.key, session.verdict))
        return lines

    def fragment_lines(self, fragment: CodeFragment) -> list[ReportLine]:
        diagnostics = fragment.linkage_diagnostics
        severity = LineSeverity.ERROR if diagnostics else LineSeverity.SUCCESS
        if diagnostics:
            self.status.fail()

        source_file = str(fragment.options.source_file) if fragment.options.source_file else UNKNOWN
        project = fragment.project_or_package or UNKNOWN
        symbol = FAILURE_SYMBOL if diagnostics else SUCCESS_SYMBOL

        lines = [
            ReportLine(LineKind.CHECKING, "  Checking Markdown..."),
            ReportLine(
                LineKind.FRAGMENT,
                f"    {symbol}  Line {fragment.line + 1}:\t{source_file} (in project {project})",
                severity,
            ),
        ]
        lines.extend(
            ReportLine(LineKind.DIAGNOSTIC, f"\t\t{diagnostic}", LineSeverity.ERROR)
            for diagnostic in diagnostics
        )
        return lines

    def verdict_lines(self, key: str | None, verdict: Verdict) -> list[ReportLine]:
        session_name = key or ""
        lines = [
            BLANK_LINE,
            ReportLine(LineKind.SESSION_HEADER, f"  Compiling samples for session \"{session_name}\""),
            BLANK_LINE,
        ]

        if verdict.kind == VerdictKind.PROJECT_FAILED:
            self.status.fail()
            lines.append(
                ReportLine(LineKind.VERDICT, f"    Build failed for project {verdict.project}", LineSeverity.ERROR)
            )
        elif verdict.kind == VerdictKind.SAMPLES_FAILED:
            self.status.fail()
            lines.append(
                ReportLine(
                    LineKind.VERDICT,
                    f"    {FAILURE_SYMBOL}  Errors found within samples for session \"{session_name}\"",
                    LineSeverity.ERROR,
                )
            )
        else:
            lines.append(
                ReportLine(
                    LineKind.VERDICT,
                    f"    {SUCCESS_SYMBOL}  No errors found within samples for session \"{session_name}\"",
                    LineSeverity.SUCCESS,
                )
            )

        lines.extend(
            ReportLine(LineKind.DIAGNOSTIC, f"\t\t{diagnostic}", LineSeverity.ERROR)
            for diagnostic in verdict.diagnostics
        )
        return lines


class ReportFormatter:
    """Renders report lines. Holds no state between lines."""

    STYLES = {
        LineSeverity.PLAIN: None,
        LineSeverity.SUCCESS: "green",
        LineSeverity.ERROR: "red",
    }

    def __init__(self, console: Console | None = None, color: bool = True):
        self.console = console or Console()
        self.color = color

    def render(self, lines: Iterable[ReportLine]):
        for line in lines:
            style = self.STYLES[line.severity] if self.color else None
            self.console.print(line.text, style=style, markup=False, highlight=False, soft_wrap=True)


def render_text(lines: Iterable[ReportLine]) -> str:
    """Render report lines as plain text."""
    return "".join(f"{line.text}\n" for line in lines)


def build_json_report(documents: list[DocumentReport], exit_code: int) -> dict[str, Any]:
    """Summarize a run as a JSON-serializable dict."""
    return {
        "exit_code": exit_code,
        "succeeded": exit_code == 0,
        "documents": [
            {
                "path": str(doc.document),
                "error": doc.error,
                "sessions": [
                    {
                        "session": s.group.key,
                        "project": s.group.project,
                        "error": s.group.error,
                        "fragments": [
                            {
                                "line": f.line + 1,
                                "editable": f.editable,
                                "region": f.options.region,
                                "source_file": str(f.options.source_file) if f.options.source_file else None,
                                "diagnostics": [str(d) for d in f.linkage_diagnostics],
                            }
                            for f in s.group.fragments
                        ],
                        "verdict": s.verdict.model_dump(mode="json") if s.verdict else None,
                    }
                    for s in doc.sessions
                ],
            }
            for doc in documents
        ],
    }


def write_json_report(path: Path, documents: list[DocumentReport], exit_code: int) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(orjson.dumps(build_json_report(documents, exit_code), option=orjson.OPT_INDENT_2))
    return path
