"""
Compiler service registry.

Central registry for compiler adapters. Handles adapter lookup and
instantiation from configuration.
"""

from typing import Callable

from sampleverify.compiler.base import CompilerService
from sampleverify.compiler.command_compiler import CommandCompilerService
from sampleverify.compiler.python_compiler import PythonCompilerService
from sampleverify.config.models import CompilerKind, VerifyConfig

CompilerFactory = Callable[[VerifyConfig], CompilerService]


def _python_factory(config: VerifyConfig) -> CompilerService:
    return PythonCompilerService()


def _command_factory(config: VerifyConfig) -> CompilerService:
    return CommandCompilerService(
        command=config.compiler.command,
        timeout=config.compiler.timeout,
        default_suffix=config.documents.include_file_suffix,
    )


class CompilerRegistry:
    """Registry for compiler services."""

    _factories: dict[CompilerKind, CompilerFactory] = {
        CompilerKind.PYTHON: _python_factory,
        CompilerKind.COMMAND: _command_factory,
    }

    @classmethod
    def get_compiler(cls, config: VerifyConfig) -> CompilerService:
        """
        Get a compiler service for the configured adapter.

        Raises:
            ValueError: If the adapter is not registered
        """
        kind = config.compiler.kind
        if kind not in cls._factories:
            raise ValueError(
                f"Unsupported compiler: {kind}. "
                f"Supported compilers: {[k.value for k in cls._factories]}"
            )
        return cls._factories[kind](config)

    @classmethod
    def register_compiler(cls, kind: CompilerKind, factory: CompilerFactory):
        """Register or replace the factory for a compiler kind."""
        cls._factories[kind] = factory

    @classmethod
    def list_supported_compilers(cls) -> list[str]:
        return [kind.value for kind in cls._factories]


def get_compiler(config: VerifyConfig) -> CompilerService:
    """Convenience function to get the configured compiler service."""
    return CompilerRegistry.get_compiler(config)
