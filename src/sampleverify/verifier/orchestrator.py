"""
Compile orchestration.

Submits one compilation unit per session to the compiler service and
classifies the result into a verdict:

- project-level errors (shared include code is broken) -> PROJECT_FAILED,
  taking precedence over everything else
- overall failure -> SAMPLES_FAILED
- otherwise -> OK

Compiler failures are semantic, so nothing is retried. Infrastructure
failures (the compiler could not run, or timed out) become PROJECT_FAILED
verdicts instead of crashing the run.
"""

import logging

from sampleverify.compiler.base import CompilerError, CompilerService
from sampleverify.config.models import (
    CompilationUnit,
    CompileResult,
    Diagnostic,
    DiagnosticSeverity,
    Verdict,
    VerdictKind,
)

logger = logging.getLogger(__name__)


def classify(result: CompileResult, project: str | None = None) -> Verdict:
    """Turn a compiler result into a verdict."""
    project_errors = tuple(
        d for d in result.project_diagnostics if d.severity == DiagnosticSeverity.ERROR
    )
    if project_errors:
        return Verdict(kind=VerdictKind.PROJECT_FAILED, project=project, diagnostics=project_errors)
    if not result.succeeded:
        return Verdict(kind=VerdictKind.SAMPLES_FAILED, project=project, diagnostics=result.diagnostics)
    return Verdict(kind=VerdictKind.OK, project=project)


class CompileOrchestrator:
    """Drives a single compile call per session."""

    def __init__(self, compiler: CompilerService):
        self.compiler = compiler

    async def verify(self, unit: CompilationUnit) -> Verdict:
        logger.info(f"Compiling session {unit.session!r} with {self.compiler.name} compiler")
        try:
            result = await self.compiler.compile(unit)
        except CompilerError as e:
            logger.warning(f"Compiler failed for session {unit.session!r}: {e}")
            return Verdict(
                kind=VerdictKind.PROJECT_FAILED,
                project=unit.project,
                diagnostics=(Diagnostic(message=str(e)),),
            )

        verdict = classify(result, unit.project)
        logger.info(f"Session {unit.session!r}: {verdict.kind.value}")
        return verdict
