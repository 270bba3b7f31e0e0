"""
Subprocess-based compiler service.

Writes the assembled sources of a unit into a temporary directory, runs an
external compiler command over them, and parses diagnostics of the common
``file:line[:column]: [severity:] message`` form from its output.

Usage:
    service = CommandCompilerService(["gcc", "-fsyntax-only", "{files}"], timeout=30)
    result = await service.compile(unit)

The ``{files}`` token expands to all materialized source paths (appended at
the end when absent); ``{dir}`` inside any token expands to the temporary
directory.
"""

import asyncio
import logging
import re
import tempfile
from pathlib import Path

from sampleverify.compiler.assembly import AssembledSource, assemble_sources
from sampleverify.compiler.base import CompilerError, CompilerService, CompilerTimeoutError
from sampleverify.config.models import (
    CompilationUnit,
    CompileResult,
    Diagnostic,
    DiagnosticSeverity,
)

logger = logging.getLogger(__name__)

FILES_PLACEHOLDER = "{files}"
DIR_PLACEHOLDER = "{dir}"

DIAGNOSTIC_PATTERN = re.compile(
    r"^(?P<file>[^:\n]+?):(?P<line>\d+)(?::(?P<column>\d+))?:\s*"
    r"(?:(?P<severity>fatal error|error|warning|note|info)\s*(?:\[[^\]]*\])?\s*:\s*)?"
    r"(?P<message>.*)$",
    re.IGNORECASE,
)

SEVERITY_MAP = {
    "fatal error": DiagnosticSeverity.ERROR,
    "error": DiagnosticSeverity.ERROR,
    "warning": DiagnosticSeverity.WARNING,
    "note": DiagnosticSeverity.INFO,
    "info": DiagnosticSeverity.INFO,
}


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", name)


class CommandCompilerService(CompilerService):
    """Runs an external compiler command against each compilation unit."""

    def __init__(self, command: list[str], timeout: int = 60, default_suffix: str = ".py"):
        if not command:
            raise CompilerError("A compiler command is required")
        self.command = list(command)
        self.timeout = timeout
        self.default_suffix = default_suffix

    @property
    def name(self) -> str:
        return "command"

    async def compile(self, unit: CompilationUnit) -> CompileResult:
        sources = assemble_sources(unit)

        with tempfile.TemporaryDirectory(prefix="sampleverify_") as tmpdir:
            workdir = Path(tmpdir)
            materialized = self._materialize(sources, workdir)
            argv = self._build_argv(list(materialized), workdir)
            logger.debug(f"Running compiler for session {unit.session!r}: {argv}")

            returncode, output = await self._run(argv, workdir)

        diagnostics: list[Diagnostic] = []
        project_diagnostics: list[Diagnostic] = []

        for line in output.splitlines():
            parsed = self._parse_line(line, materialized)
            if parsed is None:
                continue
            source, diagnostic = parsed
            if source.editable:
                diagnostics.append(diagnostic)
            else:
                project_diagnostics.append(diagnostic)

        if returncode != 0 and not diagnostics and not project_diagnostics:
            # Failure that cannot be attributed to any sample
            tail = output.strip().splitlines()[-5:]
            message = f"Compiler exited with status {returncode}"
            if tail:
                message += ": " + " | ".join(tail)
            project_diagnostics.append(Diagnostic(message=message))

        return CompileResult(
            succeeded=returncode == 0,
            diagnostics=tuple(diagnostics),
            project_diagnostics=tuple(project_diagnostics),
        )

    def _materialize(self, sources: list[AssembledSource], workdir: Path) -> dict[str, AssembledSource]:
        """Write sources to disk and return them keyed by their temporary path."""
        materialized: dict[str, AssembledSource] = {}
        for index, source in enumerate(sources):
            if source.path is not None:
                base_name = source.path.name
            else:
                base_name = f"sample{self.default_suffix}"
            file_path = workdir / f"{index:03d}_{_safe_name(base_name)}"
            file_path.write_text(source.text, encoding="utf-8")
            materialized[str(file_path)] = source
        return materialized

    def _build_argv(self, files: list[str], workdir: Path) -> list[str]:
        argv: list[str] = []
        expanded = False
        for token in self.command:
            if token == FILES_PLACEHOLDER:
                argv.extend(files)
                expanded = True
            else:
                argv.append(token.replace(DIR_PLACEHOLDER, str(workdir)))
        if not expanded:
            argv.extend(files)
        return argv

    async def _run(self, argv: list[str], workdir: Path) -> tuple[int, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(workdir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise CompilerError(f"Could not start compiler '{argv[0]}': {e}")

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CompilerTimeoutError(f"Compiler timed out after {self.timeout} seconds")

        return process.returncode or 0, stdout.decode("utf-8", errors="replace")

    def _parse_line(
        self, line: str, materialized: dict[str, AssembledSource]
    ) -> tuple[AssembledSource, Diagnostic] | None:
        match = DIAGNOSTIC_PATTERN.match(line.strip())
        if not match:
            return None

        reported = match.group("file").strip()
        source = materialized.get(reported)
        if source is None:
            for temp_path, candidate in materialized.items():
                if Path(temp_path).name == Path(reported).name:
                    source = candidate
                    break
        if source is None:
            return None

        column = match.group("column") or "0"
        severity = SEVERITY_MAP.get((match.group("severity") or "error").lower(), DiagnosticSeverity.ERROR)
        diagnostic = Diagnostic(
            message=match.group("message").strip(),
            location=f"{source.name}({match.group('line')},{column})",
            severity=severity,
        )
        return source, diagnostic
