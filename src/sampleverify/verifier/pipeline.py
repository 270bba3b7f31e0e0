"""
Verification pipeline.

Coordinates a full run:
1. Discovering documents under the root
2. Extracting annotated fragments from each document
3. Grouping fragments into sessions and collecting shared includes
4. Compiling each eligible session
5. Producing report lines and the process exit status

Documents and sessions are reported strictly in discovery / first-seen
order. With ``parallel`` enabled, the compiles of one document's sessions run
concurrently and their verdicts are matched back by session index, so the
report is identical to a sequential run.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from sampleverify.compiler.base import CompilerService
from sampleverify.compiler.registry import get_compiler
from sampleverify.config.models import CompilationUnit, Verdict, VerifyConfig
from sampleverify.markdown.fragment_stream import DocumentReadError, FragmentStream, discover_documents
from sampleverify.sessions import IncludeCollector, SessionAggregator, WorkspaceBuilder
from sampleverify.verifier.orchestrator import CompileOrchestrator
from sampleverify.verifier.report import (
    DocumentReport,
    ReportGenerator,
    ReportLine,
    RunStatus,
    SessionReport,
    write_json_report,
)

logger = logging.getLogger(__name__)

SUCCESS_EXIT_CODE = 0
FAILURE_EXIT_CODE = 1
NO_INPUT_EXIT_CODE = -1


@dataclass
class VerificationRun:
    """Outcome of a whole verification run."""

    documents: list[DocumentReport]
    lines: list[ReportLine]
    exit_code: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == SUCCESS_EXIT_CODE

    @property
    def no_input(self) -> bool:
        return self.exit_code == NO_INPUT_EXIT_CODE


class VerificationPipeline:
    """Runs the verification pipeline over every document under the root."""

    def __init__(self, config: VerifyConfig, compiler: CompilerService | None = None):
        self.config = config
        self.root = Path(config.documents.root).resolve()
        self.compiler = compiler or get_compiler(config)
        self.orchestrator = CompileOrchestrator(self.compiler)
        self.aggregator = SessionAggregator()
        self.collector = IncludeCollector(self.root, config.documents.include_file_suffix)
        self.builder = WorkspaceBuilder()

    def run(self) -> VerificationRun:
        return asyncio.run(self.run_async())

    async def run_async(self) -> VerificationRun:
        status = RunStatus()
        generator = ReportGenerator(status)

        documents = discover_documents(self.config.documents)
        if not documents:
            logger.error(f"No documents found under {self.root}")
            return VerificationRun(
                documents=[],
                lines=generator.no_input_lines(self.root),
                exit_code=NO_INPUT_EXIT_CODE,
            )

        reports: list[DocumentReport] = []
        lines: list[ReportLine] = []
        for document in documents:
            report = await self.verify_document(document)
            reports.append(report)
            lines.extend(generator.document_lines(report))

        exit_code = FAILURE_EXIT_CODE if status.failed else SUCCESS_EXIT_CODE

        if self.config.report.json_path:
            path = write_json_report(self.config.report.json_path, reports, exit_code)
            logger.info(f"JSON report written to {path}")

        return VerificationRun(documents=reports, lines=lines, exit_code=exit_code)

    async def verify_document(self, document: Path) -> DocumentReport:
        """Verify every session of a single document."""
        try:
            fragments = FragmentStream(document, self.root).fragments()
        except DocumentReadError as e:
            logger.error(str(e))
            return DocumentReport(document=document, error=str(e))

        groups = self.aggregator.aggregate(fragments)
        includes = self.collector.collect(fragments)

        units: dict[int, CompilationUnit] = {
            index: self.builder.build(group, includes)
            for index, group in enumerate(groups)
            if group.compilable
        }
        skipped = len(groups) - len(units)
        if skipped:
            logger.info(f"{document}: skipping compilation of {skipped} session(s)")

        verdicts = await self._compile_all(units)

        return DocumentReport(
            document=document,
            sessions=[
                SessionReport(group=group, verdict=verdicts.get(index))
                for index, group in enumerate(groups)
            ],
        )

    async def _compile_all(self, units: dict[int, CompilationUnit]) -> dict[int, Verdict]:
        if not self.config.parallel:
            return {index: await self.orchestrator.verify(unit) for index, unit in units.items()}

        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        indexes = list(units)
        results = await asyncio.gather(*(self._bounded_verify(units[i], semaphore) for i in indexes))
        return dict(zip(indexes, results))

    async def _bounded_verify(self, unit: CompilationUnit, semaphore: asyncio.Semaphore) -> Verdict:
        async with semaphore:
            return await self.orchestrator.verify(unit)
