"""GitHub avatar lookup through the commits of a repository."""

import logging
from typing import Any, List, Optional

from .baseclass import AvatarAdapter, RemoteSource
from ..fetching.constants import AVATAR_SIZE
from ..fetching.http_client import HttpRequest
from ..fetching.provider import Provider
from ..fetching.rate_limit_manager import RateLimitInfo, parse_rate_limit_headers

logger = logging.getLogger(__name__)

GITHUB_API_HOST = 'api.github.com'


def select_commit_index(commit_count: int, attempts: int) -> int:
    """
    Index of the commit to look up on this attempt.

    With fewer than five commits the newest untried one is used; otherwise
    the attempts step from the last commit towards the first in quarters.
    """
    if commit_count < 5:
        return commit_count - 1 - attempts
    return round((4 - attempts) * 0.25 * (commit_count - 1))


class GitHubAvatar(AvatarAdapter):
    """Finds the avatar of a commit author via GET /repos/{owner}/{repo}/commits/{sha}."""

    provider = Provider.GITHUB

    def build_request(self, source: RemoteSource, email: str, commits: List[str],
                      attempts: int, token: str = '') -> HttpRequest:
        commit = commits[select_commit_index(len(commits), attempts)]
        headers = {}
        if token:
            headers['Authorization'] = f'token {token}'
        return HttpRequest(GITHUB_API_HOST, f'/repos/{source.owner}/{source.repo}/commits/{commit}', headers)

    def parse_rate_limit(self, headers) -> Optional[RateLimitInfo]:
        return parse_rate_limit_headers(headers, 'x-ratelimit-')

    def parse_avatar_url(self, body: Any) -> Optional[str]:
        if not isinstance(body, dict):
            return None
        author = body.get('author')
        if isinstance(author, dict) and isinstance(author.get('avatar_url'), str) and author['avatar_url']:
            return author['avatar_url']
        return None

    def image_url(self, avatar_url: str) -> str:
        return f'{avatar_url}&size={AVATAR_SIZE}'
