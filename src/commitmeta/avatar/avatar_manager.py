"""Avatar manager.

Finds the avatar of a commit author on GitHub or GitLab (through the
remote of the repository the commits belong to) or on Gravatar, stores
the image in the avatar folder and keeps one cache record per email:

    email -> {'image': '<md5>.<fmt>', 'timestamp': epoch ms, 'identicon': bool}

Every saved image is announced with an update event:

    {'email': ..., 'image': 'data:image/<fmt>;base64,...'}
"""

import base64
import copy
import os
import threading
import logging
from typing import Dict, List, Optional, Tuple

import schedule
from cachetools import TTLCache

from .avatar import get_avatar_adapter, match_remote_source
from .baseclass import RemoteSource, email_hash, mask_email
from .gravatar import gravatar_urls
from ..fetching.constants import (
    AVATAR_REFRESH_AGE_MS,
    IDENTICON_REFRESH_AGE_MS,
    MAX_ATTEMPTS,
    REMOTE_SOURCE_CACHE_SIZE,
    REMOTE_SOURCE_CACHE_TTL,
)
from ..fetching.exceptions import ParseError
from ..fetching.fetch_scheduler import FetchScheduler
from ..fetching.http_client import FetchResult, HttpClientManager
from ..fetching.provider import Provider
from ..fetching.request_queue import FetchRequest
from ..repo_registry import RepoRegistry
from ..storage import CacheStorage

logger = logging.getLogger(__name__)


class AvatarRequest(FetchRequest):
    """Request for the avatar of one email, looked up through one repository."""

    def __init__(self, email: str, repo: str, remote: Optional[str] = None, commits=None):
        super().__init__(commits)
        self.email = email
        self.repo = repo
        self.remote = remote
        self.source: Optional[RemoteSource] = None

    @property
    def key(self):
        return (self.email, self.repo)

    def merge(self, other: 'AvatarRequest') -> None:
        """Append the commits of `other` that follow this request's last commit."""
        if not self.commits:
            self.commits = list(other.commits)
            return
        try:
            index = other.commits.index(self.commits[-1])
        except ValueError:
            return
        self.commits.extend(other.commits[index + 1:])

    def __repr__(self):
        return f"AvatarRequest({mask_email(self.email)!r}, {self.repo!r}, commits={len(self.commits)})"


# pylint: disable=too-many-instance-attributes
class AvatarManager(FetchScheduler):
    """Scheduler fetching and caching avatar images of commit authors."""

    # pylint: disable=too-many-arguments
    def __init__(self, registry: RepoRegistry, storage: CacheStorage, avatar_folder: str,
                 http_client: Optional[HttpClientManager] = None,
                 scheduler: Optional[schedule.Scheduler] = None,
                 gitlab_token: str = ''):
        super().__init__(storage, http_client, scheduler, name='avatar')
        self.registry = registry
        self.avatar_folder = avatar_folder
        self.gitlab_token = gitlab_token
        self._avatars: Dict[str, dict] = storage.load_initial_cache()
        self._cache_lock = threading.Lock()
        self._remote_sources = TTLCache(maxsize=REMOTE_SOURCE_CACHE_SIZE, ttl=REMOTE_SOURCE_CACHE_TTL)

    # Public API

    def fetch_avatar_image(self, email: str, repo: str, commits: List[str],
                           remote: Optional[str] = None) -> Optional[str]:
        """
        Get the avatar of an email, fetching it in the background if needed.

        A cached avatar is returned right away; when it is stale a refresh is
        queued behind the other requests. Without a usable cached avatar the
        fetch is queued to run immediately.

        Args:
            email: Author email
            repo: Repository path the commits belong to
            commits: Hashes of commits authored by the email, oldest first
            remote: Name of the remote to look the avatar up on

        Returns:
            str: data URI of the cached image, or None if nothing is cached
        """
        with self._cache_lock:
            record = copy.deepcopy(self._avatars.get(email))

        if record is None:
            self._queue_request(email, repo, remote, commits, True)
            return None

        image = self._read_image(record.get('image', ''))
        if image is None:
            logger.info("Avatar image of %s is not readable, fetching again", mask_email(email))
            self.remove_avatar_from_cache(email)
            self._queue_request(email, repo, remote, commits, True)
            return None

        if self.is_stale(record, self._now_ms()):
            self._queue_request(email, repo, remote, commits, False)
        return image

    def get_avatar_image(self, email: str) -> Optional[str]:
        """data URI of the cached avatar of an email, without fetching."""
        with self._cache_lock:
            record = self._avatars.get(email)
            image = record.get('image', '') if record else None
        return self._read_image(image) if image else None

    def get_avatars(self) -> Dict[str, dict]:
        """Copy of all cache records."""
        with self._cache_lock:
            return copy.deepcopy(self._avatars)

    def remove_avatar_from_cache(self, email: str) -> None:
        with self._cache_lock:
            self._avatars.pop(email, None)
        self.storage.remove_entry(email)

    def clear_cache(self) -> None:
        """Remove all records and their image files."""
        with self._cache_lock:
            records, self._avatars = self._avatars, {}
        for record in records.values():
            self._remove_image_file(record.get('image', ''))
        self.storage.clear()
        logger.info("Avatar cache cleared")

    @staticmethod
    def is_stale(record: dict, now_ms: int) -> bool:
        """True if a record is old enough to be fetched again."""
        age = now_ms - record.get('timestamp', 0)
        return age > AVATAR_REFRESH_AGE_MS or (bool(record.get('identicon')) and age > IDENTICON_REFRESH_AGE_MS)

    # Queueing

    # pylint: disable=too-many-arguments
    def _queue_request(self, email: str, repo: str, remote: Optional[str],
                       commits: List[str], immediate: bool) -> None:
        self.queue.add(AvatarRequest(email, repo, remote, commits), immediate)

    def _get_remote_source(self, item: AvatarRequest) -> RemoteSource:
        cache_key = (item.repo, item.remote)
        source = self._remote_sources.get(cache_key)
        if source is None:
            source = match_remote_source(self.registry.get_remote_url(item.repo, item.remote))
            self._remote_sources[cache_key] = source
            logger.debug("Avatar source of %s is %s", item.repo, source.provider.display_name)
        return source

    def _on_queue_drained(self) -> None:
        self._remote_sources.clear()

    # Dispatch

    def _process_item(self, item: AvatarRequest) -> None:
        if item.source is None:
            item.source = self._get_remote_source(item)
        provider = item.source.provider
        adapter = get_avatar_adapter(provider)
        if adapter is None or (provider == Provider.GITHUB and not item.commits):
            self._fetch_from_gravatar(item)
            return
        if self._defer_if_rate_limited(item, provider):
            return

        token = self.gitlab_token if provider == Provider.GITLAB else ''
        request = adapter.build_request(item.source, item.email, item.commits, item.attempts, token)
        logger.info('Requesting Avatar for %s from %s', mask_email(item.email), provider.display_name)
        result = self._dispatch(request, provider)
        if result is None:
            return

        rate_limit = None if result.failed else adapter.parse_rate_limit(result.headers)
        self._handle_result(item, provider, result, rate_limit, bool(token))

    def _can_retry_not_found(self, item: AvatarRequest) -> bool:
        return len(item.commits) > item.attempts + 1 and item.attempts < MAX_ATTEMPTS

    def _on_success(self, item: AvatarRequest, provider: Provider, result: FetchResult) -> None:
        adapter = get_avatar_adapter(provider)
        try:
            body = result.json()
        except ParseError as e:
            self._log_parse_error(provider, result)
            logger.debug('%s', e)
            return

        avatar_url = adapter.parse_avatar_url(body)
        if avatar_url is None:
            logger.debug("No avatar of %s on %s", mask_email(item.email), provider.display_name)
            self._fetch_from_gravatar(item)
            return

        image = self._download_image(item.email, adapter.image_url(avatar_url), provider)
        if image is not None:
            self._save_avatar(item.email, image, False)

    def _on_unhandled_status(self, item: AvatarRequest, provider: Provider,
                             result: FetchResult) -> None:
        super()._on_unhandled_status(item, provider, result)
        self._fetch_from_gravatar(item)

    def _fetch_from_gravatar(self, item: AvatarRequest) -> None:
        logger.info('Requesting Avatar for %s from %s', mask_email(item.email), Provider.GRAVATAR.display_name)
        avatar_url, identicon_url = gravatar_urls(item.email)
        image = self._download_image(item.email, avatar_url, Provider.GRAVATAR)
        identicon = False
        if image is None and not self._disposed:
            image = self._download_image(item.email, identicon_url, Provider.GRAVATAR)
            identicon = True
        if image is not None:
            self._save_avatar(item.email, image, identicon)

    # Images

    def _download_image(self, email: str, url: str, provider: Provider) -> Optional[Tuple[bytes, str]]:
        """
        Download an avatar image.

        Returns:
            (content, format) of the image, or None if there is none
        """
        result = self.http_client.get_url(url, provider.display_name)
        if self._disposed or result.failed:
            return None
        if result.status_code != 200:
            logger.debug("No avatar image of %s at %s (%d)", mask_email(email), provider.display_name,
                         result.status_code)
            return None

        content_type = result.headers.get('content-type', '').split(';', 1)[0].strip()
        if not content_type.startswith('image/') or not result.content:
            self._log_parse_error(provider, result)
            return None
        return result.content, content_type.split('/', 1)[1]

    def _save_avatar(self, email: str, image: Tuple[bytes, str], identicon: bool) -> None:
        """
        Store a downloaded image and update the cache record.

        An identicon never replaces a real avatar; it only refreshes the
        timestamp of the record.
        """
        content, fmt = image
        now = self._now_ms()
        with self._cache_lock:
            existing = copy.deepcopy(self._avatars.get(email))
        replace = existing is None or not identicon or bool(existing.get('identicon'))

        if replace:
            file_name = f'{email_hash(email)}.{fmt}'
            try:
                os.makedirs(self.avatar_folder, exist_ok=True)
                with open(os.path.join(self.avatar_folder, file_name), 'wb') as f:
                    f.write(content)
            except OSError as e:
                logger.error("Could not write avatar image %s: %s", file_name, e)
                return
            if existing is not None and existing.get('image') not in ('', file_name):
                self._remove_image_file(existing['image'])
            record = {'image': file_name, 'timestamp': now, 'identicon': identicon}
        else:
            record = dict(existing, timestamp=now)

        with self._cache_lock:
            self._avatars[email] = record
        self.storage.save_entry(email, None, None, record)

        if replace:
            logger.info('Saved Avatar for %s (identicon=%s)', mask_email(email), str(identicon).lower())
            data_uri = self._read_image(record['image'])
            if data_uri is not None:
                self.emitter.emit({'email': email, 'image': data_uri})
        else:
            logger.debug("Kept avatar of %s, identicon not saved over it", mask_email(email))

    def _read_image(self, file_name: str) -> Optional[str]:
        if not file_name or '.' not in file_name:
            return None
        try:
            with open(os.path.join(self.avatar_folder, file_name), 'rb') as f:
                data = f.read()
        except OSError:
            return None
        fmt = file_name.rsplit('.', 1)[1]
        return f"data:image/{fmt};base64,{base64.b64encode(data).decode('ascii')}"

    def _remove_image_file(self, file_name: str) -> None:
        if not file_name:
            return
        try:
            os.remove(os.path.join(self.avatar_folder, file_name))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Could not remove avatar image %s: %s", file_name, e)
