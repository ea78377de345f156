"""Registry of known repositories, their remotes and CI/CD configurations."""

import copy
import threading
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = 'origin'


class RepoRegistry:
    """
    Maps a repository path to its remote URLs and CI/CD configurations.

    Each repository entry has the shape::

        {
            'remotes': {'origin': 'https://github.com/acme/widgets.git'},
            'cicd': [{'provider': 'github', 'url': '...', 'token': ''}]
        }
    """

    def __init__(self, repos: Optional[Dict[str, Dict[str, Any]]] = None):
        self._repos: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        for repo, state in (repos or {}).items():
            self.set_repo(repo, (state or {}).get('remotes'), (state or {}).get('cicd'))

    @classmethod
    def from_config(cls, config: dict) -> 'RepoRegistry':
        """Create the registry from the `repositories` section of the config."""
        return cls(config.get('repositories') or {})

    def set_repo(self, repo: str, remotes: Optional[Dict[str, str]] = None,
                 cicd_configs: Optional[List[Dict[str, Any]]] = None) -> None:
        """Add or replace a repository."""
        with self._lock:
            self._repos[repo] = {
                'remotes': dict(remotes or {}),
                'cicd': [dict(c) for c in (cicd_configs or [])],
            }
        logger.debug("Registered repository %s", repo)

    def remove_repo(self, repo: str) -> None:
        with self._lock:
            self._repos.pop(repo, None)

    def list_repos(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of all repositories."""
        with self._lock:
            return copy.deepcopy(self._repos)

    def get_cicd_configs(self, repo: str) -> List[Dict[str, Any]]:
        """CI/CD configurations of a repository (empty if unknown)."""
        with self._lock:
            state = self._repos.get(repo)
            return [dict(c) for c in state['cicd']] if state else []

    def get_remote_url(self, repo: str, remote: Optional[str] = None) -> Optional[str]:
        """URL of a remote, by default `origin` or else the first remote."""
        with self._lock:
            state = self._repos.get(repo)
            if state is None or not state['remotes']:
                return None
            remotes = state['remotes']
            if remote is not None:
                return remotes.get(remote)
            if DEFAULT_REMOTE in remotes:
                return remotes[DEFAULT_REMOTE]
            return next(iter(remotes.values()))
