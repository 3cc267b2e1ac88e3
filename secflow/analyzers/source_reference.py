"""
Source reference parsing.
Turns the many ways users write a repository into one canonical owner/repo form.
"""

import re
from typing import Optional, Tuple
from dataclasses import dataclass


@dataclass
class SourceReference:
    """Parsed repository reference."""
    owner: str
    repo: str
    host: str = "github.com"

    @property
    def canonical(self) -> str:
        # GitHub is implied; other hosts stay explicit
        if self.host == "github.com":
            return f"{self.owner}/{self.repo}"
        return f"{self.host}/{self.owner}/{self.repo}"

    @property
    def module_path(self) -> str:
        """Go module path, e.g. github.com/owner/repo."""
        return f"{self.host}/{self.owner}/{self.repo}"

    @property
    def name(self) -> str:
        return self.repo


_URL_PATTERNS = [
    r'^(?:https?://|git@)?(?:www\.)?([\w.-]+\.[a-z]{2,})[/:]([^/\s]+)/([^/\s]+?)(?:\.git)?/?$',
]
_SHORT_PATTERN = r'^([^/\s:]+)/([^/\s]+?)(?:\.git)?/?$'


def parse_source_reference(reference: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Parse host, owner and repo from a URL or owner/repo string."""
    ref = reference.strip()
    for pattern in _URL_PATTERNS:
        match = re.match(pattern, ref, re.IGNORECASE)
        if match:
            return match.group(1).lower(), match.group(2), match.group(3)

    match = re.match(_SHORT_PATTERN, ref)
    if match:
        return None, match.group(1), match.group(2)

    return None, None, None


def normalize_source_reference(reference: str) -> SourceReference:
    """
    Normalize a repository reference.

    Args:
        reference: owner/repo, https://github.com/owner/repo(.git) or git@github.com:owner/repo.git

    Returns:
        SourceReference with the canonical owner/repo form

    Raises:
        ValueError: If the reference cannot be parsed
    """
    host, owner, repo = parse_source_reference(reference)
    if not owner or not repo:
        raise ValueError(f"Invalid source reference: {reference}")
    return SourceReference(owner=owner, repo=repo, host=host or "github.com")
