"""
Core models for sampleverify.

Defines the run configuration and the records that flow through the
verification pipeline, using Pydantic for validation.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class CompilerKind(str, Enum):
    """Supported compiler service adapters."""

    PYTHON = "python"  # In-process compile() of Python samples
    COMMAND = "command"  # External compiler invoked as a subprocess


class DiagnosticSeverity(str, Enum):
    """Severity of a diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class VerdictKind(str, Enum):
    """Outcome of compiling one session."""

    OK = "ok"
    PROJECT_FAILED = "project_failed"  # Shared/include code is broken
    SAMPLES_FAILED = "samples_failed"  # Editable samples are broken


# ============================================================================
# Run Configuration
# ============================================================================


class DocumentConfig(BaseModel):
    """Where documents are discovered."""

    root: Path = Field(default=Path("."), description="Root directory containing documents")
    patterns: list[str] = Field(
        default_factory=lambda: ["*.md"], description="Glob patterns matched recursively under root"
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: [".git", "node_modules", "venv", ".venv", "__pycache__"],
        description="Path components to skip during discovery",
    )
    include_file_suffix: str = Field(
        default=".py", description="Suffix of the generated default include file name"
    )


class CompilerConfig(BaseModel):
    """Configuration for the compiler service."""

    kind: CompilerKind = Field(default=CompilerKind.PYTHON, description="Compiler adapter")
    command: list[str] = Field(
        default_factory=list,
        description="Command line for the 'command' adapter; '{files}' expands to the sources",
    )
    timeout: int = Field(default=60, gt=0, description="Per-session compile timeout in seconds")


class ReportConfig(BaseModel):
    """Configuration for report output."""

    json_path: Path | None = Field(default=None, description="Also write a JSON report here")
    color: bool = Field(default=True, description="Colorize console output")


class VerifyConfig(BaseModel):
    """Root configuration model for sampleverify."""

    documents: DocumentConfig = Field(default_factory=DocumentConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    parallel: bool = Field(
        default=False, description="Compile independent sessions of a document concurrently"
    )
    max_concurrency: int = Field(default=4, ge=1, description="Upper bound on concurrent compiles")


# ============================================================================
# Fragment Models
# ============================================================================


class Diagnostic(BaseModel):
    """A single problem reported against a fragment or a compilation unit."""

    model_config = ConfigDict(frozen=True)

    message: str
    location: str | None = None  # e.g. "/docs/include.py(3,5)"
    severity: DiagnosticSeverity = DiagnosticSeverity.ERROR

    def __str__(self) -> str:
        if self.location:
            return f"{self.location}: {self.message}"
        return self.message


class FragmentOptions(BaseModel):
    """Options declared on a fenced code block. All optional."""

    model_config = ConfigDict(frozen=True)

    session: str | None = None
    editable: bool = True
    project_or_package: str | None = None
    destination_file: Path | None = None
    region: str | None = None
    source_file: Path | None = None


class CodeFragment(BaseModel):
    """One annotated code block extracted from a document.

    Identity is (document, line); ``line`` is the 0-based line index of the
    opening fence.
    """

    model_config = ConfigDict(frozen=True)

    document: Path
    line: int
    language: str = ""
    source_text: str
    options: FragmentOptions = Field(default_factory=FragmentOptions)
    linkage_diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def editable(self) -> bool:
        return self.options.editable

    @property
    def project_or_package(self) -> str | None:
        return self.options.project_or_package

    def has_linkage_errors(self) -> bool:
        return bool(self.linkage_diagnostics)


# ============================================================================
# Compilation Models
# ============================================================================


class BufferId(BaseModel):
    """Identifies a buffer: a file path plus an optional named region."""

    model_config = ConfigDict(frozen=True)

    path: Path | None = None
    region: str | None = None

    def __str__(self) -> str:
        name = str(self.path) if self.path else "<sample>"
        return f"{name}@{self.region}" if self.region else name


class IncludeFile(BaseModel):
    """Whole-file shared content merged from read-only fragments."""

    model_config = ConfigDict(frozen=True)

    path: Path
    content: str


class WorkspaceBuffer(BaseModel):
    """A buffer in a compilation unit: either an editable sample or a region include."""

    model_config = ConfigDict(frozen=True)

    id: BufferId
    content: str
    editable: bool = False


class CompilationUnit(BaseModel):
    """Everything submitted to the compiler service for one session."""

    model_config = ConfigDict(frozen=True)

    session: str | None = None
    project: str | None = None
    buffers: tuple[WorkspaceBuffer, ...] = ()
    files: tuple[IncludeFile, ...] = ()

    @property
    def editable_buffers(self) -> tuple[WorkspaceBuffer, ...]:
        return tuple(b for b in self.buffers if b.editable)


class CompileResult(BaseModel):
    """Result returned by a compiler service."""

    model_config = ConfigDict(frozen=True)

    succeeded: bool
    diagnostics: tuple[Diagnostic, ...] = ()
    project_diagnostics: tuple[Diagnostic, ...] = ()


class Verdict(BaseModel):
    """Per-session compile outcome."""

    model_config = ConfigDict(frozen=True)

    kind: VerdictKind
    project: str | None = None
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def ok(self) -> bool:
        return self.kind == VerdictKind.OK
