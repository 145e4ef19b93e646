"""Repository identity: the (owner, name) pair naming a GitHub repository."""

import re
from dataclasses import dataclass
from typing import Optional

# git@github.com:owner/repo.git
_SSH_PATTERN = re.compile(r"^git@github\.com:([^/]+)/(.+?)(?:\.git)?/?$")
# https://github.com/owner/repo.git (also ssh://git@github.com/owner/repo)
_URL_PATTERN = re.compile(
    r"^(?:https?|ssh|git)://(?:[^@/]+@)?github\.com(?::\d+)?/([^/]+)/(.+?)(?:\.git)?/?$"
)


@dataclass(frozen=True, eq=False)
class RepoRef:
    """A GitHub repository identity.

    GitHub treats repository paths case-insensitively, so equality and
    hashing ignore case while the original spelling is kept for display.
    """
    owner: str
    name: str

    def _key(self) -> tuple[str, str]:
        return (self.owner.lower(), self.name.lower())

    def __eq__(self, other):
        if not isinstance(other, RepoRef):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __str__(self):
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, text: str) -> "RepoRef":
        """Parse ``owner/name``. Raises ValueError for anything else."""
        parts = text.strip().split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError(f"expected OWNER/NAME, got {text!r}")
        return cls(parts[0], parts[1])


def parse_remote_url(url: str) -> Optional[RepoRef]:
    """Extract owner/name from a GitHub SSH or HTTPS remote URL.

    Returns None for non-GitHub or unrecognised URLs.
    """
    url = url.strip()
    for pattern in (_SSH_PATTERN, _URL_PATTERN):
        m = pattern.match(url)
        if m:
            owner, name = m.group(1), m.group(2)
            if "/" in name:
                return None
            return RepoRef(owner, name)
    return None
