"""GitLab avatar lookup through the user search API."""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

from .baseclass import AvatarAdapter, RemoteSource
from ..fetching.http_client import HttpRequest
from ..fetching.provider import Provider
from ..fetching.rate_limit_manager import RateLimitInfo, parse_rate_limit_headers

logger = logging.getLogger(__name__)

GITLAB_HOST = 'gitlab.com'


class GitLabAvatar(AvatarAdapter):
    """Finds the avatar of a commit author via GET /api/v4/users?search={email}."""

    provider = Provider.GITLAB

    def build_request(self, source: RemoteSource, email: str, commits: List[str],
                      attempts: int, token: str = '') -> HttpRequest:
        headers = {}
        if token:
            headers['PRIVATE-TOKEN'] = token
        return HttpRequest(GITLAB_HOST, f"/api/v4/users?search={quote(email, safe='@')}", headers)

    def parse_rate_limit(self, headers) -> Optional[RateLimitInfo]:
        return parse_rate_limit_headers(headers, 'ratelimit-')

    def parse_avatar_url(self, body: Any) -> Optional[str]:
        if not isinstance(body, list) or len(body) == 0 or not isinstance(body[0], dict):
            return None
        avatar_url = body[0].get('avatar_url')
        return avatar_url if isinstance(avatar_url, str) and avatar_url else None
