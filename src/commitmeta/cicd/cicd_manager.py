"""CI/CD status manager.

Fetches check runs, jobs, pipelines and builds of commits from GitHub,
GitLab and Jenkins, keeps them in a cache keyed

    repo path -> commit hash -> status id -> record

and emits one update event per (repo, hash) whose statuses changed:

    {'repo': ..., 'hash': ..., 'statuses': {status id: record}}

Requests are queued per CI/CD configuration of the repository; at most
one request is in flight at a time, and result pages are followed one by
one up to `maximum_statuses` statuses.
"""

import copy
import json
import threading
import logging
from typing import Dict, List, Optional

import schedule

from .baseclass import CicdAdapter, CicdRecord, CicdTarget
from .cicd import get_cicd_adapter
from ..fetching.constants import DEFAULT_MAXIMUM_STATUSES
from ..fetching.exceptions import MisconfiguredError, ParseError
from ..fetching.fetch_scheduler import FetchScheduler
from ..fetching.http_client import FetchResult, HttpClientManager
from ..fetching.provider import Provider
from ..fetching.request_queue import FetchRequest
from ..repo_registry import RepoRegistry
from ..storage import CacheStorage

logger = logging.getLogger(__name__)


# pylint: disable=too-many-instance-attributes
class CicdRequest(FetchRequest):
    """Request for the statuses of one commit from one CI/CD configuration."""

    # pylint: disable=too-many-arguments
    def __init__(self, repo: str, commit: str, config: dict, adapter: CicdAdapter,
                 target: CicdTarget, detail: bool = True, page: int = 1,
                 maximum_statuses: int = DEFAULT_MAXIMUM_STATUSES, commits=None,
                 fetched: int = 0):
        candidates = [commit] if commit else []
        for candidate in commits or []:
            if candidate not in candidates:
                candidates.append(candidate)
        super().__init__(candidates)
        self.repo = repo
        self.commit = commit
        self.config = config
        self.adapter = adapter
        self.target = target
        self.detail = detail
        self.page = page
        self.maximum_statuses = maximum_statuses
        self.fetched = fetched  # Statuses saved from the previous pages

    @property
    def provider(self) -> Provider:
        return self.adapter.provider

    @property
    def token(self) -> str:
        return self.config.get('token') or ''

    @property
    def key(self):
        return (self.repo, self.commit, self.config.get('url', ''), self.detail, self.page)

    def merge(self, other: 'CicdRequest') -> None:
        super().merge(other)
        self.config = other.config
        self.target = other.target
        self.maximum_statuses = other.maximum_statuses

    def next_page(self, fetched: int) -> 'CicdRequest':
        return CicdRequest(self.repo, self.commit, self.config, self.adapter, self.target,
                           self.detail, self.page + 1, self.maximum_statuses, self.commits, fetched)

    def __repr__(self):
        return f"CicdRequest({self.repo!r}, {self.commit!r}, detail={self.detail}, page={self.page})"


class CicdManager(FetchScheduler):
    """Scheduler fetching and caching CI/CD statuses of commits."""

    # pylint: disable=too-many-arguments
    def __init__(self, registry: RepoRegistry, storage: CacheStorage,
                 http_client: Optional[HttpClientManager] = None,
                 scheduler: Optional[schedule.Scheduler] = None,
                 maximum_statuses: int = DEFAULT_MAXIMUM_STATUSES):
        super().__init__(storage, http_client, scheduler, name='cicd')
        self.registry = registry
        self.maximum_statuses = maximum_statuses
        self._cicds: Dict[str, Dict[str, Dict[str, dict]]] = storage.load_initial_cache()
        self._cache_lock = threading.Lock()

    # Public API

    def fetch_cicd_status(self, repo: str, commit: str, commits: Optional[List[str]] = None) -> int:
        """
        Queue a detail fetch of a commit for every CI/CD configuration of the repo.

        Args:
            repo: Repository path
            commit: Commit hash
            commits: Further candidate hashes identifying the same commit

        Returns:
            int: Number of requests queued or merged
        """
        queued = 0
        for config in self.registry.get_cicd_configs(repo):
            if self._queue_request(repo, commit, config, True, commits):
                queued += 1
        return queued

    def fetch_list(self, repo: str) -> int:
        """Queue a list fetch of the recent runs of every CI/CD configuration of the repo."""
        queued = 0
        for config in self.registry.get_cicd_configs(repo):
            if self._queue_request(repo, '', config, False, None):
                queued += 1
        return queued

    def get_cicd_detail(self, repo: str, commit: str) -> Optional[str]:
        """
        Get the cached statuses of a commit.

        If nothing is cached and the repository is known, a fetch is queued.

        Returns:
            str: JSON encoded {status id: record}, or None if nothing is cached
        """
        with self._cache_lock:
            statuses = self._cicds.get(repo, {}).get(commit)
            data = json.dumps(statuses) if statuses else None
        if data is None:
            self.fetch_cicd_status(repo, commit)
        return data

    def get_cicds(self, repo: str, commit: str) -> Dict[str, dict]:
        """Copy of the cached statuses of a commit (empty if none)."""
        with self._cache_lock:
            return copy.deepcopy(self._cicds.get(repo, {}).get(commit, {}))

    def remove_from_cache(self, repo: str, commit: Optional[str] = None) -> None:
        """Remove the statuses of one commit, or of a whole repository."""
        with self._cache_lock:
            if commit is None:
                self._cicds.pop(repo, None)
            elif repo in self._cicds:
                self._cicds[repo].pop(commit, None)
                if not self._cicds[repo]:
                    del self._cicds[repo]
        self.storage.remove_entry(repo, commit)

    def clear_cache(self) -> None:
        """Remove all statuses from the cache."""
        with self._cache_lock:
            self._cicds = {}
        self.storage.clear()
        logger.info("CICD cache cleared")

    # Queueing

    # pylint: disable=too-many-arguments
    def _queue_request(self, repo: str, commit: str, config: dict, detail: bool,
                       commits: Optional[List[str]]) -> bool:
        try:
            adapter = get_cicd_adapter(config.get('provider'))
        except RuntimeError as e:
            logger.info('Unknown provider Error')
            logger.debug('%s', e)
            return False

        try:
            target = self._match_target(adapter, config.get('url', ''))
        except MisconfiguredError as e:
            logger.info('%s', e.message)
            return False

        request = CicdRequest(repo, commit, config, adapter, target, detail,
                              maximum_statuses=self.maximum_statuses, commits=commits)
        self.queue.add(request, True)
        return True

    @staticmethod
    def _match_target(adapter: CicdAdapter, url: str) -> CicdTarget:
        """
        Parse the configured URL with the provider's adapter.

        Raises:
            MisconfiguredError: If the URL doesn't match the provider
        """
        target = adapter.match_remote_url(url)
        if target is None:
            name = adapter.provider.display_name
            raise MisconfiguredError(f'Requesting CICD is not match URL ({url}) for {name}', name)
        return target

    # Dispatch

    def _process_item(self, item: CicdRequest) -> None:
        provider = item.provider
        if self._defer_if_rate_limited(item, provider):
            return

        request = item.adapter.build_request(item.target, item.token, item.page, item.detail, item.commit)
        logger.info('Requesting CICD for %s detail=%s page=%d from %s',
                    request.url, str(item.detail).lower(), item.page, provider.display_name)
        result = self._dispatch(request, provider)
        if result is None:
            return

        rate_limit = None if result.failed else item.adapter.parse_rate_limit(result.headers)
        self._handle_result(item, provider, result, rate_limit, bool(item.token))

    def _on_success(self, item: CicdRequest, provider: Provider, result: FetchResult) -> None:
        try:
            records = item.adapter.parse_body(result.json(), result.headers, item.target,
                                              item.commits, item.detail)
        except ParseError as e:
            self._log_parse_error(provider, result)
            logger.debug('%s', e)
            return

        if not records:
            self._retry_not_found(item, f'CICD for {item.commit or item.repo} from {provider.display_name}')
            return

        self._save_records(item.repo, records)
        fetched = item.fetched + len(records)

        pagination = item.adapter.parse_pagination(result.headers, item.page)
        if pagination.has_more and fetched < item.maximum_statuses:
            self.queue.add(item.next_page(fetched), True)
        elif pagination.has_more:
            logger.info(
                'CICD Maximum Statuses(maximumStatuses=%d) reached, if you want to change '
                'Maximum page, please configure cicd.maximum_statuses', item.maximum_statuses
            )
        else:
            logger.debug('CICD last page (page=%d) reached for %s', item.page, item.target.url)

        logger.info('Added CICD for %s page=%d statuses=%d from %s',
                    item.target.url, item.page, len(records), provider.display_name)

    def _save_records(self, repo: str, records: List[CicdRecord]) -> None:
        saves: Dict[str, Dict[str, dict]] = {}
        with self._cache_lock:
            for record in records:
                data = record.to_dict()
                self._cicds.setdefault(repo, {}).setdefault(record.sha, {})[record.status_id] = data
                saves.setdefault(record.sha, {})[record.status_id] = data

        for sha, statuses in saves.items():
            for status_id, data in statuses.items():
                self.storage.save_entry(repo, sha, status_id, data)
            self.emitter.emit({'repo': repo, 'hash': sha, 'statuses': copy.deepcopy(statuses)})
