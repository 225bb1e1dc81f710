"""
Used-resource ledger.

A JSON array of lowercase identifiers (wallet addresses) shared by every
test worker on the machine. All reads and writes happen under a
cross-process file lock; ``reserve`` picks and marks in one critical
section so two workers can never walk away with the same identifier.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterable, Iterator, Sequence

import structlog
from filelock import FileLock, Timeout

from walle_e2e.core.errors import LedgerError

logger = structlog.get_logger()

Chooser = Callable[[Sequence[str]], str]


def _first(candidates: Sequence[str]) -> str:
    return candidates[0]


class ResourceLedger:
    """
    Usage:
        ledger = ResourceLedger(Path("data/used_wallet_addresses.json"))
        address = ledger.reserve(candidates)
    """

    def __init__(self, path: Path | str, lock_timeout: float = 10.0):
        self.path = Path(path)
        self._lock = FileLock(f"{self.path}.lock", timeout=lock_timeout)

    def used(self) -> set[str]:
        with self._locked():
            return self._read()

    def is_used(self, resource: str) -> bool:
        return resource.lower() in self.used()

    def mark_used(self, resource: str) -> None:
        with self._locked():
            used = self._read()
            if resource.lower() in used:
                return
            used.add(resource.lower())
            self._write(used)
        logger.info("ledger_marked_used", resource=resource.lower(), path=str(self.path))

    def first_unused(self, candidates: Iterable[str]) -> str | None:
        used = self.used()
        for candidate in candidates:
            if candidate.lower() not in used:
                return candidate
        return None

    def unused_count(self, candidates: Iterable[str]) -> int:
        used = self.used()
        return sum(1 for c in candidates if c.lower() not in used)

    def reserve(self, candidates: Iterable[str], choose: Chooser = _first) -> str:
        """
        Pick an unused candidate and mark it used atomically.

        Raises:
            LedgerError: every candidate is already used
        """
        with self._locked():
            used = self._read()
            available = [c for c in candidates if c.lower() not in used]
            if not available:
                raise LedgerError(
                    f"No unused resources left in {self.path}; reset the ledger to reuse them"
                )
            chosen = choose(available)
            used.add(chosen.lower())
            self._write(used)
        logger.info("ledger_reserved", resource=chosen.lower(), remaining=len(available) - 1)
        return chosen

    def reset(self) -> None:
        with self._locked():
            self.path.unlink(missing_ok=True)
        logger.info("ledger_reset", path=str(self.path))

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire()
        except Timeout as e:
            raise LedgerError(f"Timed out waiting for ledger lock {e.lock_file}") from e
        try:
            yield
        finally:
            self._lock.release()

    def _read(self) -> set[str]:
        if not self.path.exists():
            return set()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise LedgerError(f"Ledger file {self.path} is unreadable: {e}") from e
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            raise LedgerError(f"Ledger file {self.path} is not a JSON array of strings")
        return {item.lower() for item in data}

    def _write(self, used: set[str]) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(sorted(used), f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            Path(tmp).unlink(missing_ok=True)
            raise LedgerError(f"Cannot write ledger file {self.path}: {e}") from e

    def __repr__(self) -> str:
        return f"ResourceLedger({str(self.path)!r})"

