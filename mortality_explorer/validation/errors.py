from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from mortality_explorer.core.exceptions import ExplorerError


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    field: Optional[str] = None


class ValidationError(ExplorerError):
    """Resolved state violates a rule that could not be repaired."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("\n".join(f"{i.code}: {i.message}" for i in issues))

    @property
    def codes(self) -> list[str]:
        return [i.code for i in self.issues]
