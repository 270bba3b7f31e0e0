"""
In-process Python compiler service.

Compiles every assembled source with the builtin ``compile()``. Nothing is
executed. Syntax errors in sources that no editable sample contributed to
are reported as project-level diagnostics.
"""

import asyncio
import logging

from sampleverify.compiler.assembly import AssembledSource, assemble_sources
from sampleverify.compiler.base import CompilerService
from sampleverify.config.models import (
    CompilationUnit,
    CompileResult,
    Diagnostic,
    DiagnosticSeverity,
)

logger = logging.getLogger(__name__)


def check_source(source: AssembledSource) -> Diagnostic | None:
    """Compile one source and return its syntax error, if any."""
    try:
        compile(source.text, source.name, "exec", dont_inherit=True)
    except SyntaxError as e:
        location = source.name
        if e.lineno is not None:
            location = f"{source.name}({e.lineno},{e.offset or 0})"
        return Diagnostic(
            message=e.msg,
            location=location,
            severity=DiagnosticSeverity.ERROR,
        )
    except ValueError as e:
        # e.g. source code string cannot contain null bytes
        return Diagnostic(message=str(e), location=source.name, severity=DiagnosticSeverity.ERROR)
    return None


class PythonCompilerService(CompilerService):
    """Compiles Python samples with the running interpreter."""

    @property
    def name(self) -> str:
        return "python"

    async def compile(self, unit: CompilationUnit) -> CompileResult:
        return await asyncio.to_thread(self._compile_unit, unit)

    def _compile_unit(self, unit: CompilationUnit) -> CompileResult:
        diagnostics: list[Diagnostic] = []
        project_diagnostics: list[Diagnostic] = []

        for source in assemble_sources(unit):
            diagnostic = check_source(source)
            if diagnostic is None:
                continue
            if source.editable:
                diagnostics.append(diagnostic)
            else:
                project_diagnostics.append(diagnostic)

        logger.debug(
            f"Compiled session {unit.session!r}: {len(diagnostics)} sample error(s), "
            f"{len(project_diagnostics)} project error(s)"
        )
        return CompileResult(
            succeeded=not diagnostics and not project_diagnostics,
            diagnostics=tuple(diagnostics),
            project_diagnostics=tuple(project_diagnostics),
        )
