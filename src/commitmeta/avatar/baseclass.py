"""Base class for avatar provider adapters.

Avatar adapters look up the avatar URL of a commit author through a
provider API. The image itself is downloaded by AvatarManager.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ..fetching.http_client import HttpRequest
from ..fetching.provider import Provider
from ..fetching.rate_limit_manager import RateLimitInfo

logger = logging.getLogger(__name__)


def email_hash(email: str) -> str:
    """MD5 hex digest of an email, as used by Gravatar and for image file names."""
    return hashlib.md5(email.encode('utf-8')).hexdigest()


def mask_email(email: str) -> str:
    """Hide the domain of an email for log messages."""
    return email.split('@', 1)[0] + '@*****'


# pylint: disable=too-few-public-methods
class RemoteSource:
    """Where avatars of a repository's authors are looked up."""

    def __init__(self, provider: Provider, owner: str = '', repo: str = ''):
        self.provider = provider
        self.owner = owner
        self.repo = repo

    def __eq__(self, other):
        if not isinstance(other, RemoteSource):
            return NotImplemented
        return (self.provider, self.owner, self.repo) == (other.provider, other.owner, other.repo)

    def __repr__(self):
        return f"RemoteSource({self.provider.value!r}, {self.owner!r}, {self.repo!r})"


class AvatarAdapter(ABC):
    """Adapter for a provider API that knows avatar URLs.

    Subclasses must set `provider` and implement the abstract methods.
    """

    provider: Provider

    # pylint: disable=too-many-arguments
    @abstractmethod
    def build_request(self, source: RemoteSource, email: str, commits: List[str],
                      attempts: int, token: str = '') -> HttpRequest:
        """Build the lookup request for an author."""

    @abstractmethod
    def parse_rate_limit(self, headers) -> Optional[RateLimitInfo]:
        """Extract rate limit information from response headers."""

    @abstractmethod
    def parse_avatar_url(self, body: Any) -> Optional[str]:
        """
        Extract the avatar URL from a decoded response body.

        Returns:
            The URL, or None if the response doesn't contain one
        """

    def image_url(self, avatar_url: str) -> str:
        """URL the avatar image is downloaded from."""
        return avatar_url
