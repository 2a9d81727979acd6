"""
Code coverage result model.

Coverage collection itself belongs to the host engine; these types only hold
what it reports so the run summary can carry it.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any


@dataclass
class CodeCoveragePoint:
    """One command location that coverage tracks."""

    path: str
    line: int
    column: int = 0
    bp_line: int = 0
    bp_column: int = 0
    ast_text: str = ""
    text: str | None = None
    hit: bool = False

    def __str__(self) -> str:
        return f"{self.hit}:'{self.ast_text}':{self.line}:{self.column}:{self.path}"


@dataclass
class CodeCoverage:
    coverage_percent: Decimal = Decimal(0)
    coverage_report: str | None = None
    commands_analyzed_count: int = 0
    commands_executed_count: int = 0
    commands_missed_count: int = 0
    files_analyzed_count: int = 0
    commands_missed: list[CodeCoveragePoint] = field(default_factory=list)
    commands_executed: list[CodeCoveragePoint] = field(default_factory=list)
    files_analyzed: list[str] = field(default_factory=list)

    @classmethod
    def create(cls) -> "CodeCoverage":
        return cls()

    @classmethod
    def from_points(cls, points: list[CodeCoveragePoint]) -> "CodeCoverage":
        """Summarize hit/missed points into counts and a percentage."""
        executed = [p for p in points if p.hit]
        missed = [p for p in points if not p.hit]
        files = sorted({p.path for p in points})
        if points:
            percent = (Decimal(len(executed)) * 100 / Decimal(len(points))).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
        else:
            percent = Decimal(0)
        return cls(
            coverage_percent=percent,
            commands_analyzed_count=len(points),
            commands_executed_count=len(executed),
            commands_missed_count=len(missed),
            files_analyzed_count=len(files),
            commands_missed=missed,
            commands_executed=executed,
            files_analyzed=files,
        )

    def meets_target(self, target: Decimal | float | int) -> bool:
        return self.coverage_percent >= Decimal(str(target))

    def to_dict(self) -> dict[str, Any]:
        return {
            "CoveragePercent": float(self.coverage_percent),
            "CommandsAnalyzedCount": self.commands_analyzed_count,
            "CommandsExecutedCount": self.commands_executed_count,
            "CommandsMissedCount": self.commands_missed_count,
            "FilesAnalyzedCount": self.files_analyzed_count,
        }

    def __str__(self) -> str:
        return f"{self.coverage_percent:.2f} %"
