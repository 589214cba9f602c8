"""Parallel processing of battle log directories.

Every analysis (statistics, search, anonymization) is a LogHandler. The
engine walks the root directories, hands each file to the handler on a
thread pool, and calls the handler's finalize step once with every
successful per-file result.

Usage:
    handler = BattleSearcher("Annika")
    engine = ParallelDirectoryEngine(handler, EngineConfig(max_workers=8))
    stats = engine.process([Path("logs/2021-09")])
"""

import os
from abc import ABC, abstractmethod
from concurrent.futures import ALL_COMPLETED, FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Generic, Iterable, Iterator, List, Optional, TypeVar

import click

from .errors import ConfigurationError, EngineError, ErrorCollector, InvalidLogError, LogIOError

R = TypeVar("R")


class LogHandler(ABC, Generic[R]):
    """One analysis over a set of battle logs."""

    @abstractmethod
    def handle_log_file(self, raw_json: str, path: Path) -> R:
        """Process one log file.

        Called concurrently from worker threads: may do its own I/O but must
        not mutate state shared across files. Raises BattleToolsError on
        failure; any exception it raises fails only this file.
        """

    @abstractmethod
    def handle_results(self, results: List[R]) -> None:
        """Merge all per-file results. Called once, after every file is done."""


def default_worker_count() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass
class EngineConfig:
    """Configuration for the directory engine."""
    max_workers: Optional[int] = None  # None: default_worker_count()

    # Files and directories whose name contains this are skipped
    exclude: Optional[str] = None

    # Upper bound on files in flight at once
    max_pending: int = 256

    def __post_init__(self):
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"Thread count must be at least 1 (got {self.max_workers})")
        if self.max_pending < 1:
            raise ConfigurationError(f"max_pending must be at least 1 (got {self.max_pending})")
        if self.exclude == "":
            self.exclude = None


@dataclass
class RunStats:
    """Statistics from one engine run."""
    files_found: int = 0
    files_processed: int = 0
    files_failed: int = 0
    files_excluded: int = 0
    errors: ErrorCollector = field(default_factory=ErrorCollector)

    @property
    def successful(self) -> bool:
        """A run succeeds when at least one file was processed."""
        return self.files_processed > 0

    def print_summary(self):
        """Print run summary to stderr."""
        click.echo("\n" + "=" * 50, err=True)
        click.echo(f"Files found:        {self.files_found}", err=True)
        click.echo(f"Files processed:    {self.files_processed}", err=True)
        click.echo(f"Files failed:       {self.files_failed}", err=True)
        if self.files_excluded > 0:
            click.echo(f"Files excluded:     {self.files_excluded}", err=True)
        if self.errors.issues:
            self.errors.print_summary()


class ParallelDirectoryEngine(Generic[R]):
    """Runs a LogHandler over every file below a set of directories."""

    def __init__(self, handler: LogHandler[R], config: Optional[EngineConfig] = None):
        self.handler = handler
        self.config = config or EngineConfig()

    def _is_excluded(self, name: str) -> bool:
        return self.config.exclude is not None and self.config.exclude in name

    def _validate_roots(self, directories: Iterable[Path | str]) -> List[Path]:
        roots: List[Path] = []
        seen = set()
        for directory in directories:
            root = Path(directory)
            if not root.is_dir():
                raise EngineError(f"Not a directory: {root}")
            resolved = root.resolve()
            if resolved not in seen:
                seen.add(resolved)
                roots.append(root)
        if not roots:
            raise EngineError("No directories given")
        return roots

    def iter_log_files(self, directories: Iterable[Path | str], stats: Optional[RunStats] = None) -> Iterator[Path]:
        """Yield every regular file below the directories, each exactly once.

        Nested roots would otherwise yield the same file twice.
        """
        seen = set()
        for root in self._validate_roots(directories):
            for dirpath, dirnames, filenames in os.walk(root):
                kept = [d for d in dirnames if not self._is_excluded(d)]
                if stats is not None:
                    stats.files_excluded += sum(
                        _count_files(Path(dirpath) / d) for d in dirnames if self._is_excluded(d)
                    )
                dirnames[:] = kept

                for filename in filenames:
                    path = Path(dirpath) / filename
                    if not path.is_file():
                        continue
                    if self._is_excluded(filename):
                        if stats is not None:
                            stats.files_excluded += 1
                        continue
                    resolved = path.resolve()
                    if resolved in seen:
                        continue
                    seen.add(resolved)
                    yield path

    def _handle_file(self, path: Path) -> R:
        """Read one file and pass it to the handler (runs on a worker thread)."""
        try:
            raw_json = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise InvalidLogError(f"{path}: not valid UTF-8 ({e.reason})") from e
        except OSError as e:
            raise LogIOError(f"{path}: {e.strerror or e}") from e
        return self.handler.handle_log_file(raw_json, path)

    def _collect(
        self,
        pending: Dict[Future, Path],
        results: List[R],
        stats: RunStats,
        return_when: str,
    ):
        """Move finished futures into results or the error collector."""
        done, _ = wait(pending, return_when=return_when)
        for future in done:
            path = pending.pop(future)
            try:
                results.append(future.result())
            except Exception as e:
                stats.files_failed += 1
                stats.errors.add_failure(path, e)
            else:
                stats.files_processed += 1

    def process(self, directories: Iterable[Path | str]) -> RunStats:
        """Process every file, then finalize the handler once.

        Per-file failures are recorded in the returned stats. Errors raised
        by the handler's finalize step propagate.
        """
        directories = list(directories)
        self._validate_roots(directories)

        stats = RunStats()
        results: List[R] = []
        workers = self.config.max_workers or default_worker_count()

        with ThreadPoolExecutor(max_workers=workers) as executor:
            pending: Dict[Future, Path] = {}
            for path in self.iter_log_files(directories, stats):
                stats.files_found += 1
                if len(pending) >= self.config.max_pending:
                    self._collect(pending, results, stats, FIRST_COMPLETED)
                pending[executor.submit(self._handle_file, path)] = path
            if pending:
                self._collect(pending, results, stats, ALL_COMPLETED)

        self.handler.handle_results(results)
        return stats


def _count_files(directory: Path) -> int:
    """Count regular files below an excluded directory (for reporting only)."""
    return sum(len(filenames) for _, _, filenames in os.walk(directory))
