"""
Integration tests for the full verification workflow.

Runs real Markdown documents through discovery, aggregation, include
collection, compilation and reporting.
"""

import asyncio
import shlex
import sys
import textwrap
from pathlib import Path

import orjson
import pytest
from typer.testing import CliRunner

from sampleverify.cli.main import app
from sampleverify.compiler.base import CompilerService
from sampleverify.compiler.python_compiler import PythonCompilerService
from sampleverify.config.loader import create_config_from_args, generate_default_config
from sampleverify.config.models import CompilationUnit, CompileResult, VerdictKind
from sampleverify.verifier.pipeline import NO_INPUT_EXIT_CODE, VerificationPipeline
from sampleverify.verifier.report import LineKind, render_text


class RecordingCompiler(CompilerService):
    """Wraps the Python compiler and records every unit it is given."""

    def __init__(self):
        self.inner = PythonCompilerService()
        self.units: list[CompilationUnit] = []

    @property
    def name(self) -> str:
        return "recording"

    async def compile(self, unit: CompilationUnit) -> CompileResult:
        self.units.append(unit)
        return await self.inner.compile(unit)


@pytest.fixture
def docs(tmp_path):
    """A documentation root; returns a helper that writes documents into it."""
    root = tmp_path.resolve() / "docs"
    root.mkdir()

    def _write(name: str, text: str) -> Path:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return path

    _write.root = root
    return _write


def run_pipeline(root: Path, parallel: bool = False, **kwargs):
    compiler = RecordingCompiler()
    config = create_config_from_args(root=root, parallel=parallel, **kwargs)
    run = VerificationPipeline(config, compiler=compiler).run()
    return run, compiler


def test_single_valid_session(docs):
    """One editable fragment in one session compiles cleanly."""
    docs(
        "guide.md",
        """
        # Guide

        ```python --session s1
        print("hello")
        ```
        """,
    )

    run, compiler = run_pipeline(docs.root)

    assert run.exit_code == 0
    assert run.succeeded
    [document] = run.documents
    [session] = document.sessions
    assert session.verdict.kind == VerdictKind.OK
    assert len(compiler.units) == 1
    assert "No errors found within samples for session \"s1\"" in render_text(run.lines)


def test_session_spanning_projects_is_never_compiled(docs):
    """Two packages in one session yield a session error and no compile call."""
    docs(
        "guide.md",
        """
        ```python --session s1 --package P1
        a = 1
        ```

        ```python --session s1 --package P2
        b = 2
        ```
        """,
    )

    run, compiler = run_pipeline(docs.root)

    assert run.exit_code == 1
    assert compiler.units == []
    text = render_text(run.lines)
    assert "Session cannot span projects or packages: --session s1" in text
    assert "Compiling samples" not in text


def test_region_include_merged_once(docs):
    """A read-only region and an editable sample in the same session."""
    docs(
        "guide.md",
        """
        ```python --session s1 --editable false --destination-file lib.py --region setup
        import math
        ```

        ```python --session s1 --destination-file lib.py --region usage
        print(math.pi)
        ```

        ```python --session s1 --editable false --destination-file lib.py --region setup
        radius = 2
        ```
        """,
    )

    run, compiler = run_pipeline(docs.root)

    assert run.exit_code == 0
    [unit] = compiler.units
    setup = [b for b in unit.buffers if b.id.region == "setup"]
    assert len(setup) == 1
    assert setup[0].content == "import math\nradius = 2\n"
    assert setup[0].id.path == docs.root / "lib.py"


def test_broken_sample_in_shared_region_fails(docs):
    """A broken sample fails even when a read-only fragment fills the same region."""
    (docs.root / "lib.py").write_text("#region setup\n#endregion\n", encoding="utf-8")
    docs(
        "guide.md",
        """
        ```python --session s1 --destination-file lib.py --region setup
        def broken(:
        ```

        ```python --session s1 --editable false --destination-file lib.py --region setup
        x = 1
        ```
        """,
    )

    run, _ = run_pipeline(docs.root)

    assert run.exit_code == 1
    [session] = run.documents[0].sessions
    assert session.verdict.kind == VerdictKind.SAMPLES_FAILED


def test_linkage_error_skips_compilation(docs):
    """A fragment with a missing source file blocks its session's compile step only."""
    docs(
        "guide.md",
        """
        ```python --session broken --source-file ./missing.py
        ```

        ```python --session fine
        x = 1
        ```
        """,
    )

    run, compiler = run_pipeline(docs.root)

    assert run.exit_code == 1
    assert [u.session for u in compiler.units] == ["fine"]
    text = render_text(run.lines)
    assert f"File not found: {docs.root / 'missing.py'}" in text
    assert "Compiling samples for session \"broken\"" not in text
    assert "Compiling samples for session \"fine\"" in text


def test_undecodable_source_file_stays_local(docs):
    """A source file that is not UTF-8 fails its own session; other sessions still run."""
    (docs.root / "blob.py").write_bytes(b"\xff\xfe\x00bad")
    docs(
        "guide.md",
        """
        ```python --session s1 --source-file blob.py
        ```

        ```python --session s2
        x = 1
        ```
        """,
    )

    run, compiler = run_pipeline(docs.root)

    assert run.exit_code == 1
    assert [u.session for u in compiler.units] == ["s2"]
    text = render_text(run.lines)
    assert f"Unable to read file {docs.root / 'blob.py'}" in text
    assert "No errors found within samples for session \"s2\"" in text


def test_undecodable_document_stays_local(docs):
    """A document that cannot be decoded is reported and the next document still runs."""
    (docs.root / "a.md").write_bytes(b"\xff\xfe```python --session s1\n")
    docs("b.md", "```python --session s2\nx = 1\n```\n")

    run, compiler = run_pipeline(docs.root)

    assert run.exit_code == 1
    assert [u.session for u in compiler.units] == ["s2"]
    first, second = run.documents
    assert first.error.startswith(f"Unable to read document {docs.root / 'a.md'}")
    assert first.sessions == []
    assert second.sessions[0].verdict.kind == VerdictKind.OK
    assert any(line.kind == LineKind.DOCUMENT_ERROR for line in run.lines)


def test_broken_sample_and_broken_include(docs):
    """Sample-level and project-level failures are reported distinctly."""
    docs(
        "guide.md",
        """
        ```python --session samples
        def broken(:
            pass
        ```

        ```python --session shared --editable false --package demo
        class Broken
        ```

        ```python --session shared --package demo
        x = 1
        ```
        """,
    )

    run, _ = run_pipeline(docs.root)

    assert run.exit_code == 1
    verdicts = {s.group.key: s.verdict for s in run.documents[0].sessions}
    assert verdicts["samples"].kind == VerdictKind.SAMPLES_FAILED
    assert verdicts["shared"].kind == VerdictKind.PROJECT_FAILED
    text = render_text(run.lines)
    assert "X  Errors found within samples for session \"samples\"" in text
    assert "Build failed for project demo" in text


def test_global_includes_reach_every_session(docs):
    """Session-less read-only fragments are shared by all sessions."""
    docs(
        "guide.md",
        """
        ```python --editable false
        def helper():
            return 42
        ```

        ```python --session a
        a = 1
        ```

        ```python --session b
        b = 2
        ```
        """,
    )

    run, compiler = run_pipeline(docs.root)

    assert run.exit_code == 0
    by_session = {u.session: u for u in compiler.units}
    for key in ("a", "b"):
        assert [f.content for f in by_session[key].files] == ["def helper():\n    return 42\n"]


def test_session_named_global_double_counts_global_includes(docs):
    """Pin the current behavior for a session literally named 'global'."""
    docs(
        "guide.md",
        """
        ```python --editable false
        shared = 1
        ```

        ```python --session global
        x = shared
        ```
        """,
    )

    run, compiler = run_pipeline(docs.root)

    units = {u.session: u for u in compiler.units}
    assert [f.content for f in units["global"].files] == ["shared = 1\n", "shared = 1\n"]
    assert units[None].files[0].content == "shared = 1\n"


def test_no_documents(tmp_path):
    """An empty root returns the distinct no-input status without compiling."""
    run, compiler = run_pipeline(tmp_path)

    assert run.exit_code == NO_INPUT_EXIT_CODE
    assert run.no_input
    assert compiler.units == []
    assert [line.kind for line in run.lines] == [LineKind.NO_INPUT]


def test_report_order_across_documents_and_sessions(docs):
    """Documents, sessions and fragments appear in declaration order."""
    docs(
        "a.md",
        """
        ```python --session zeta
        z = 1
        ```

        ```python --session alpha
        a = 1
        ```

        ```python --session zeta
        z2 = 2
        ```
        """,
    )
    docs("b.md", "```python --session only\nx = 1\n```\n")

    run, _ = run_pipeline(docs.root)

    headers = [line.text for line in run.lines if line.kind in (LineKind.DOCUMENT, LineKind.SESSION_HEADER)]
    assert headers == [
        str(docs.root / "a.md"),
        "  Compiling samples for session \"zeta\"",
        "  Compiling samples for session \"alpha\"",
        str(docs.root / "b.md"),
        "  Compiling samples for session \"only\"",
    ]
    fragment_lines = [line.text for line in run.lines if line.kind == LineKind.FRAGMENT]
    assert [text.split(":")[0].strip() for text in fragment_lines] == [
        "✓  Line 1",
        "✓  Line 9",
        "✓  Line 5",
        "✓  Line 1",
    ]


class SlowCompiler(CompilerService):
    """Tracks how many compiles are in flight at once."""

    def __init__(self):
        self.active = 0
        self.peak = 0

    @property
    def name(self) -> str:
        return "slow"

    async def compile(self, unit: CompilationUnit) -> CompileResult:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.05)
        self.active -= 1
        return CompileResult(succeeded=True)


def test_parallel_respects_max_concurrency(docs):
    """Concurrent compiles never exceed the configured bound."""
    docs(
        "guide.md",
        "".join(f"```python --session s{i}\nx = {i}\n```\n\n" for i in range(5)),
    )
    compiler = SlowCompiler()
    config = create_config_from_args(root=docs.root, parallel=True, max_concurrency=2)

    run = VerificationPipeline(config, compiler=compiler).run()

    assert run.exit_code == 0
    assert compiler.peak == 2


def test_parallel_output_matches_sequential(docs):
    """Concurrent compiles produce byte-identical report output."""
    for index in range(3):
        docs(
            f"doc{index}.md",
            """
            ```python --session one
            x = 1
            ```

            ```python --session two
            def broken(:
            ```

            ```python --session three --editable false --package p
            y = 2
            ```

            ```python --session three --package p
            z = y
            ```
            """,
        )

    sequential, _ = run_pipeline(docs.root, parallel=False)
    parallel, _ = run_pipeline(docs.root, parallel=True, max_concurrency=2)

    assert render_text(parallel.lines) == render_text(sequential.lines)
    assert parallel.exit_code == sequential.exit_code == 1


def test_json_report_written(docs, tmp_path):
    """The JSON report mirrors the run."""
    docs("guide.md", "```python --session s1\nx = 1\n```\n")
    report_path = tmp_path / "report.json"

    run, _ = run_pipeline(docs.root, json_report=report_path)

    data = orjson.loads(report_path.read_bytes())
    assert data["exit_code"] == run.exit_code == 0
    assert data["documents"][0]["sessions"][0]["verdict"]["kind"] == "ok"


# =============================================================================
# CLI
# =============================================================================


def test_cli_verify_success(docs):
    """The verify command exits 0 and prints the report."""
    docs("guide.md", "```python --session s1\nx = 1\n```\n")

    result = CliRunner().invoke(app, ["verify", str(docs.root), "--no-color"])

    assert result.exit_code == 0
    assert "No errors found within samples for session \"s1\"" in result.output


def test_cli_verify_failure(docs):
    """The verify command exits non-zero on failures."""
    docs("guide.md", "```python --session s1\ndef broken(:\n```\n")

    result = CliRunner().invoke(app, ["verify", str(docs.root), "--no-color"])

    assert result.exit_code == 1
    assert "Errors found within samples for session \"s1\"" in result.output


def test_cli_verify_no_documents(tmp_path):
    """The verify command returns the no-input status for an empty root."""
    result = CliRunner().invoke(app, ["verify", str(tmp_path), "--no-color"])

    assert result.exit_code == NO_INPUT_EXIT_CODE


def test_cli_compiler_options_override_config_file(docs, tmp_path):
    """The --compiler/--command options take effect together with --config."""
    docs("guide.md", "```python --session s1\nx = 1\n```\n")
    config_path = tmp_path / "sampleverify.yaml"
    generate_default_config(config_path)
    command = f"{shlex.quote(sys.executable)} -c 'import sys; sys.exit(2)' {{files}}"

    with_config = CliRunner().invoke(
        app, ["verify", str(docs.root), "-c", str(config_path), "--no-color"]
    )
    overridden = CliRunner().invoke(
        app,
        [
            "verify",
            str(docs.root),
            "-c",
            str(config_path),
            "--compiler",
            "command",
            "--command",
            command,
            "--no-color",
        ],
    )

    assert with_config.exit_code == 0
    assert overridden.exit_code == 1
    assert "Compiler exited with status 2" in overridden.output


def test_cli_sessions_escapes_session_names(docs):
    """Session names that look like rich markup are shown literally."""
    docs("guide.md", "```python --session [red]\nx = 1\n```\n")

    result = CliRunner().invoke(app, ["sessions", str(docs.root)])

    assert result.exit_code == 0
    assert "[red]" in result.output


def test_cli_sessions_lists_without_compiling(docs):
    """The sessions command shows a table per document."""
    docs(
        "guide.md",
        """
        ```python --session s1 --package P1
        a = 1
        ```

        ```python --session s1 --package P2
        b = 2
        ```
        """,
    )

    result = CliRunner().invoke(app, ["sessions", str(docs.root)])

    assert result.exit_code == 0
    assert "s1" in result.output
    assert "spans projects" in result.output


def test_cli_init_writes_config(tmp_path):
    """The init command writes a loadable configuration file."""
    output = tmp_path / "sampleverify.yaml"

    result = CliRunner().invoke(app, ["init", "--output", str(output)])

    assert result.exit_code == 0
    assert output.exists()
