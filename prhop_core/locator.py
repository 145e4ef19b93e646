"""Known-repos registry: maps a GitHub repository to a local checkout path.

The registry is a single JSON document shared by every prhop process on
the host. Reads are lock-free. Writes take an exclusive advisory lock on
a sibling ``.lock`` file for the whole read-modify-write and replace the
document atomically, so concurrent writers never lose each other's
updates and readers never see a torn file. A reader racing a writer may
see either the old or the new document; that is all the application
needs.
"""

import errno
import fcntl
import json
import os
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from prhop_core import git_ops
from prhop_core.paths import cache_dir, configure_logger, known_repos_file
from prhop_core.repo_ref import RepoRef
from prhop_core.settings import DEFAULT_LOCK_TIMEOUT, SettingsError, load_settings

_log = configure_logger("prhop.locator")


class Source(str, Enum):
    """How a registry entry's path was established."""
    DETECTED = "detected"
    CLONED = "cloned"
    MANUAL = "manual"


@dataclass
class RepoLocation:
    """One registry entry."""
    repo: RepoRef
    path: str
    last_seen: datetime
    source: Source

    def to_dict(self) -> dict:
        return {
            "owner": self.repo.owner,
            "name": self.repo.name,
            "path": self.path,
            "last_seen": self.last_seen.isoformat(),
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "RepoLocation":
        """Build an entry from its JSON form. Raises ValueError/KeyError/TypeError on bad input."""
        return cls(
            repo=RepoRef(str(raw["owner"]), str(raw["name"])),
            path=str(raw["path"]),
            last_seen=datetime.fromisoformat(raw["last_seen"]),
            source=Source(raw["source"]),
        )


class LocatorLockTimeout(Exception):
    """Raised when the known-repos lock cannot be acquired within the timeout."""


class CorruptRegistry(ValueError):
    """Raised internally when the registry document cannot be parsed."""


class RepoLocator:
    """Persisted repo -> local path registry."""

    def __init__(self, data_path: Optional[Path] = None,
                 cache_root: Optional[Path] = None,
                 lock_timeout: Optional[float] = None,
                 auto_prune: Optional[bool] = None):
        self.data_path = Path(data_path) if data_path else known_repos_file()
        self.cache_root = Path(cache_root) if cache_root else cache_dir()
        self._lock_timeout = lock_timeout
        self._auto_prune = auto_prune

    @property
    def lock_path(self) -> Path:
        return self.data_path.with_name(self.data_path.name + ".lock")

    # ------------------------------------------------------------------
    # Queries (lock-free)
    # ------------------------------------------------------------------

    def lookup(self, repo: RepoRef) -> Optional[str]:
        """Return the registered path for *repo*, or None.

        An unreadable or corrupt document counts as "not found".
        """
        try:
            entries = self._load()
        except (CorruptRegistry, OSError) as e:
            _log.warning("lookup %s: registry unreadable (%s)", repo, e)
            return None
        for entry in entries:
            if entry.repo == repo:
                return entry.path
        return None

    def all(self) -> list[RepoLocation]:
        """Snapshot of every entry. A corrupt document yields an empty list."""
        try:
            return self._load()
        except (CorruptRegistry, OSError) as e:
            _log.warning("all: registry unreadable (%s)", e)
            return []

    def cache_clone_path(self, repo: RepoRef) -> str:
        """Deterministic managed clone location for *repo*. No filesystem access."""
        return str(self.cache_root / "clones" / repo.owner / repo.name)

    def validate(self, repo: RepoRef, prune: Optional[bool] = None) -> Optional[str]:
        """Return the registered path for *repo* if it still holds that repo.

        The path must exist, be a git working copy, and have an origin
        remote naming owner/name. A stale entry is removed from the
        registry unless pruning is disabled (``prune=False`` or the
        ``auto_prune`` setting); either way None is returned.
        """
        path = self.lookup(repo)
        if path is None:
            return None
        if is_valid_repo_dir(Path(path), repo):
            return path

        if prune is None:
            prune = self._prune_default()
        if prune:
            self._prune(repo, path)
        else:
            _log.info("validate %s: stale entry %s kept (pruning disabled)", repo, path)
        return None

    # ------------------------------------------------------------------
    # Mutations (locked read-modify-write)
    # ------------------------------------------------------------------

    def register(self, repo: RepoRef, path: str | Path, source: Source | str) -> None:
        """Add or overwrite the mapping for *repo*."""
        source = Source(source)
        path = str(path)

        def upsert(entries: list[RepoLocation]) -> list[RepoLocation]:
            now = datetime.now(timezone.utc)
            for entry in entries:
                if entry.repo == repo:
                    entry.path = path
                    entry.last_seen = now
                    entry.source = source
                    return entries
            entries.append(RepoLocation(repo=repo, path=path, last_seen=now, source=source))
            return entries

        self._locked_update(upsert)
        _log.info("register %s -> %s (%s)", repo, path, source.value)

    def remove(self, repo: RepoRef) -> None:
        """Delete the entry for *repo*. Removing an absent repo is a no-op."""
        removed = []

        def drop(entries: list[RepoLocation]) -> list[RepoLocation]:
            kept = [e for e in entries if e.repo != repo]
            removed.extend(e for e in entries if e.repo == repo)
            return kept

        self._locked_update(drop)
        if removed:
            _log.info("remove %s", repo)

    def _prune(self, repo: RepoRef, stale_path: str) -> bool:
        """Drop *repo*'s entry only if it still points at *stale_path*.

        The validity check ran without the lock, so another process may
        have registered a new path meanwhile; that entry is kept.
        """
        pruned = []

        def drop_stale(entries: list[RepoLocation]) -> list[RepoLocation]:
            kept = []
            for e in entries:
                if e.repo == repo and e.path == stale_path:
                    pruned.append(e)
                else:
                    kept.append(e)
            return kept

        self._locked_update(drop_stale)
        if pruned:
            _log.info("validate %s: pruned stale entry %s", repo, stale_path)
        else:
            _log.info("validate %s: entry changed since check, not pruned", repo)
        return bool(pruned)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _load(self) -> list[RepoLocation]:
        try:
            raw = self.data_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except UnicodeDecodeError as e:
            raise CorruptRegistry(f"{self.data_path}: not UTF-8: {e}") from e
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError) as e:
            raise CorruptRegistry(f"{self.data_path}: {e}") from e
        if data is None:
            return []
        if not isinstance(data, list):
            raise CorruptRegistry(f"{self.data_path}: expected a JSON array")
        try:
            return [RepoLocation.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptRegistry(f"{self.data_path}: bad entry: {e}") from e

    def _save(self, entries: list[RepoLocation]) -> None:
        """Atomically replace the document: temp file in the same dir + rename."""
        self.data_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([e.to_dict() for e in entries], indent=2) + "\n"
        fd, tmp_name = tempfile.mkstemp(
            dir=self.data_path.parent, prefix=self.data_path.name + ".", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.data_path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _prune_default(self) -> bool:
        if self._auto_prune is not None:
            return self._auto_prune
        try:
            return load_settings().auto_prune
        except SettingsError:
            return True

    def _timeout(self) -> float:
        if self._lock_timeout is not None:
            return self._lock_timeout
        try:
            return load_settings().lock_timeout
        except SettingsError:
            return DEFAULT_LOCK_TIMEOUT

    @contextmanager
    def _lock(self, timeout: Optional[float] = None):
        """Acquire an exclusive advisory lock on known-repos.json.lock.

        Yields the open lock file. The lock is released when the context
        manager exits (even on exception).
        """
        if timeout is None:
            timeout = self._timeout()
        lock_path = self.lock_path
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + timeout
        fd = open(lock_path, "w")
        try:
            waited = False
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError as e:
                    if e.errno not in (errno.EACCES, errno.EAGAIN):
                        raise
                    if time.monotonic() >= deadline:
                        fd.close()
                        raise LocatorLockTimeout(
                            f"Could not acquire lock on {lock_path} within "
                            f"{timeout}s; another prhop process may be writing "
                            f"known-repos.json. If no other process is running, "
                            f"delete {lock_path} and retry."
                        ) from None
                    if not waited:
                        _log.debug("waiting for lock %s", lock_path)
                        waited = True
                    time.sleep(0.05)
            yield fd
        finally:
            if not fd.closed:
                try:
                    fcntl.flock(fd, fcntl.LOCK_UN)
                except OSError:
                    pass
                fd.close()

    def _locked_update(self, fn: Callable[[list[RepoLocation]], list[RepoLocation]]) -> list[RepoLocation]:
        """Atomic read-modify-write of the registry document.

        Loads fresh state under the lock (a missing or corrupt document
        is treated as empty), applies ``fn``, and replaces the file. Never
        hold the lock across git or network calls.
        """
        with self._lock():
            try:
                entries = self._load()
            except CorruptRegistry as e:
                _log.warning("registry corrupt, starting fresh: %s", e)
                entries = []
            entries = fn(entries)
            self._save(entries)
        return entries


def is_valid_repo_dir(path: Path, expected: RepoRef) -> bool:
    """Check that *path* is a git working copy whose origin names *expected*.

    The remote URL is matched case-insensitively on ``owner/name`` as a
    substring, which covers SSH and HTTPS forms with or without ``.git``.
    """
    if not (path / ".git").exists():
        return False
    url = git_ops.remote_url(path)
    if not url:
        return False
    return f"{expected.owner}/{expected.name}".lower() in url.lower()
