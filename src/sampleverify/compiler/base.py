"""
Base compiler service interface.

All compiler adapters implement this interface. A compiler service accepts a
CompilationUnit and returns a CompileResult; it does not classify the
outcome, that is the orchestrator's job.
"""

from abc import ABC, abstractmethod

from sampleverify.config.models import CompilationUnit, CompileResult


class CompilerError(Exception):
    """Raised when the compiler itself could not be run."""

    pass


class CompilerTimeoutError(CompilerError):
    """Raised when a compile call exceeds its time limit."""

    pass


class CompilerService(ABC):
    """Abstract base class for compiler services."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the adapter name (e.g., 'python', 'command')."""
        pass

    @abstractmethod
    async def compile(self, unit: CompilationUnit) -> CompileResult:
        """
        Compile one unit.

        Args:
            unit: The assembled compilation unit for a session

        Returns:
            CompileResult with overall success, sample diagnostics and
            project-level diagnostics

        Raises:
            CompilerError: If the compiler could not be invoked
        """
        pass
