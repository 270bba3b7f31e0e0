"""
Session aggregation.

Partitions a document's fragments into sessions keyed by the raw declared
session value and validates that each session targets a single project or
package.
"""

import logging
from dataclasses import dataclass

from sampleverify.config.models import CodeFragment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionGroup:
    """All fragments of one document sharing a declared session value."""

    key: str | None
    fragments: tuple[CodeFragment, ...]
    project_identities: tuple[str, ...]
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def editable_fragments(self) -> tuple[CodeFragment, ...]:
        return tuple(f for f in self.fragments if f.editable)

    @property
    def has_linkage_errors(self) -> bool:
        return any(f.has_linkage_errors() for f in self.fragments)

    @property
    def compilable(self) -> bool:
        """Valid and free of linkage diagnostics."""
        return self.valid and not self.has_linkage_errors

    @property
    def project(self) -> str | None:
        """First non-blank project/package identity, scanning left to right."""
        return self.project_identities[0] if self.project_identities else None


def distinct_identities(fragments: tuple[CodeFragment, ...]) -> tuple[str, ...]:
    """Distinct non-blank project/package identities, in first-seen order."""
    identities: dict[str, None] = {}
    for fragment in fragments:
        identity = fragment.project_or_package
        if identity and identity.strip():
            identities.setdefault(identity, None)
    return tuple(identities)


class SessionAggregator:
    """Groups fragments into sessions, enforcing one project per session."""

    def aggregate(self, fragments: list[CodeFragment]) -> list[SessionGroup]:
        grouped: dict[str | None, list[CodeFragment]] = {}
        for fragment in fragments:
            grouped.setdefault(fragment.options.session, []).append(fragment)

        groups = []
        for key, members in grouped.items():
            members_tuple = tuple(members)
            identities = distinct_identities(members_tuple)

            error = None
            if len(identities) > 1:
                error = f"Session cannot span projects or packages: --session {key or ''}"
                logger.debug(f"Session {key!r} references {len(identities)} projects: {identities}")

            groups.append(
                SessionGroup(
                    key=key,
                    fragments=members_tuple,
                    project_identities=identities,
                    error=error,
                )
            )

        return groups
