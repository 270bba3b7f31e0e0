"""
Shared fixtures for sampleverify tests.
"""

from pathlib import Path

import pytest

from sampleverify.config.models import CodeFragment, Diagnostic, FragmentOptions


@pytest.fixture
def make_fragment():
    """Factory for code fragments with increasing line numbers."""
    state = {"line": 0}

    def _make(
        source_text: str = "x = 1",
        session: str | None = None,
        editable: bool = True,
        project: str | None = None,
        destination: Path | None = None,
        region: str | None = None,
        source_file: Path | None = None,
        diagnostics: tuple[str, ...] = (),
        document: Path = Path("/docs/readme.md"),
    ) -> CodeFragment:
        state["line"] += 3
        return CodeFragment(
            document=document,
            line=state["line"],
            language="python",
            source_text=source_text,
            options=FragmentOptions(
                session=session,
                editable=editable,
                project_or_package=project,
                destination_file=destination,
                region=region,
                source_file=source_file,
            ),
            linkage_diagnostics=tuple(Diagnostic(message=m) for m in diagnostics),
        )

    return _make
