"""
Repository allowlist.

An optional, static set of repositories permitted to deploy. Loaded once
at startup from a YAML file of the form:

    allowed_repos:
      - org/app
      - org/api

No file configured, or a configured path that does not exist, disables
the allowlist and every repository is permitted.
"""

from pathlib import Path
from typing import AbstractSet, Iterable, Optional

import yaml
from pydantic import ValidationError

from vibedeploy.models.allowlist import AllowlistConfig
from vibedeploy.utils.logging import get_logger


logger = get_logger(__name__)


class AllowlistConfigError(Exception):
    """Raised when a configured allowlist file cannot be read or parsed."""
    pass


def is_repo_allowed(repository: str, allowed_repos: Optional[AbstractSet[str]]) -> bool:
    """
    Check a repository against the allowlist.

    Args:
        repository: Repository identifier, e.g. 'org/app'
        allowed_repos: Loaded set, or None when the allowlist is disabled

    Returns:
        True if permitted (exact match, no normalization)
    """
    if allowed_repos is None:
        return True
    return repository in allowed_repos


class RepositoryAllowlist:
    """Immutable allowlist handle shared by the reaction pipeline."""

    def __init__(self, allowed_repos: Optional[Iterable[str]] = None):
        self._allowed: Optional[frozenset] = (
            frozenset(allowed_repos) if allowed_repos is not None else None
        )

    @property
    def enabled(self) -> bool:
        return self._allowed is not None

    def is_allowed(self, repository: str) -> bool:
        return is_repo_allowed(repository, self._allowed)

    def __len__(self) -> int:
        return len(self._allowed) if self._allowed is not None else 0

    def __repr__(self) -> str:
        if self._allowed is None:
            return "RepositoryAllowlist(disabled)"
        return f"RepositoryAllowlist({sorted(self._allowed)!r})"


def load_allowlist(config_path: Optional[str]) -> RepositoryAllowlist:
    """
    Load the allowlist from a YAML file.

    Args:
        config_path: Path from ALLOWED_REPOS_CONFIG, may be empty

    Returns:
        RepositoryAllowlist (disabled when no file applies)

    Raises:
        AllowlistConfigError: If the file exists but is unreadable or malformed
    """
    if not config_path:
        logger.info("No allowed repos config specified, allowing all repositories")
        return RepositoryAllowlist()

    path = Path(config_path)
    if not path.exists():
        logger.info(f"Allowed repos config file not found at {config_path}, allowing all repositories")
        return RepositoryAllowlist()

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise AllowlistConfigError(f"failed to read allowed repos config: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise AllowlistConfigError(f"failed to parse allowed repos config: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise AllowlistConfigError(
            f"failed to parse allowed repos config: expected a mapping, got {type(data).__name__}"
        )

    try:
        config = AllowlistConfig.model_validate(data)
    except ValidationError as e:
        raise AllowlistConfigError(f"failed to parse allowed repos config: {e}") from e

    allowlist = RepositoryAllowlist(config.allowed_repos)
    logger.info(f"Loaded {len(allowlist)} allowed repositories from config")
    return allowlist
