"""Errors and per-file issue collection for battle log processing.

Exceptions:
- InvalidLogError: malformed or structurally incomplete battle record
- LogIOError: a single log file could not be read or written
- ConfigurationError / EngineError: startup validation, fatal for the run

Per-file failures never abort a run; the engine records them in an
ErrorCollector, which can print a summary or write a JSONL report.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

import click


class BattleToolsError(Exception):
    """Base class for all battle-tools errors."""


class InvalidLogError(BattleToolsError):
    """A battle record is malformed or missing required fields."""


class LogIOError(BattleToolsError):
    """A log file could not be read, or its output could not be written."""


class ConfigurationError(BattleToolsError):
    """Required configuration is missing or invalid."""


class EngineError(BattleToolsError):
    """The directory engine cannot start (e.g. a root directory is missing)."""


class IssueType(str, Enum):
    """Types of per-file failures."""
    INVALID_LOG = "invalid_log"
    IO_ERROR = "io_error"


@dataclass
class DataIssue:
    """A single file that failed during processing."""
    issue_type: IssueType
    file_path: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_type": self.issue_type.value,
            "file_path": self.file_path,
            "message": self.message,
            "timestamp": self.timestamp,
        }


def issue_type_for(error: BaseException) -> IssueType:
    """Classify an exception raised while handling one file."""
    if isinstance(error, (LogIOError, OSError)):
        return IssueType.IO_ERROR
    return IssueType.INVALID_LOG


class ErrorCollector:
    """Collects per-file failures.

    Not thread-safe: only the engine's dispatching thread records issues.

    Usage:
        collector = ErrorCollector()
        collector.add_failure("logs/1.log.json", InvalidLogError("No p1 value"))
        collector.write_report("errors.jsonl")
    """

    def __init__(self):
        self._issues: List[DataIssue] = []

    def add_issue(self, issue_type: IssueType, file_path: str | Path, message: str):
        """Add a data issue."""
        self._issues.append(
            DataIssue(
                issue_type=issue_type,
                file_path=str(file_path),
                message=message,
            )
        )

    def add_failure(self, file_path: str | Path, error: BaseException):
        """Record the exception that made a file fail."""
        message = str(error) or type(error).__name__
        if str(error) and not isinstance(error, BattleToolsError):
            message = f"{type(error).__name__}: {message}"
        self.add_issue(issue_type_for(error), file_path, message)

    @property
    def issues(self) -> List[DataIssue]:
        return self._issues

    @property
    def failed_paths(self) -> List[str]:
        return [issue.file_path for issue in self._issues]

    def get_summary(self) -> Dict[str, int]:
        """Get count of issues by type."""
        summary: Dict[str, int] = {}
        for issue in self._issues:
            key = issue.issue_type.value
            summary[key] = summary.get(key, 0) + 1
        return summary

    def write_report(self, output_path: Path | str):
        """Write issues to a JSONL file."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            for issue in self._issues:
                f.write(json.dumps(issue.to_dict()) + "\n")

    def print_summary(self, limit: int = 5):
        """Print a summary of collected issues to stderr."""
        summary = self.get_summary()
        if not summary:
            click.echo("No failed files.", err=True)
            return

        click.echo(f"\nFailed files ({len(self._issues)} total):", err=True)
        for issue_type, count in sorted(summary.items()):
            click.echo(f"  {issue_type}: {count}", err=True)
        for issue in self._issues[:limit]:
            click.echo(f"  - {issue.file_path}: {issue.message}", err=True)
        if len(self._issues) > limit:
            click.echo(f"  ... and {len(self._issues) - limit} more", err=True)
