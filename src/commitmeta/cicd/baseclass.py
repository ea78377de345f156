"""Base class for CI/CD provider adapters.

An adapter is stateless: it matches remote URLs, builds the HTTP request
for a commit and turns a decoded response into normalized CicdRecords.
It never performs I/O itself; CicdManager dispatches the requests.

Record shape (what is stored and emitted per status id):
    {name, status, ref, web_url, event, detail, allow_failure}
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..fetching.http_client import HttpRequest
from ..fetching.provider import Provider
from ..fetching.rate_limit_manager import RateLimitInfo
from ..fetching.remote_url import split_owner_repo, split_remote_url

logger = logging.getLogger(__name__)


# pylint: disable=too-few-public-methods,too-many-instance-attributes
class CicdTarget:
    """Parsed remote of a CI/CD configuration."""

    def __init__(self, url: str, scheme: str, hostname: str, port: str = '',
                 path: str = '', owner: str = '', repo: str = ''):
        self.url = url
        self.scheme = scheme
        self.hostname = hostname
        self.port = port
        self.path = path
        self.owner = owner
        self.repo = repo

    @property
    def base_url(self) -> str:
        """scheme://host[:port] of the remote."""
        netloc = self.hostname if not self.port else f"{self.hostname}:{self.port}"
        return f"{self.scheme}://{netloc}"

    def __repr__(self):
        return f"CicdTarget({self.url!r})"


class Pagination:
    """Pagination metadata of a response."""

    def __init__(self, has_more: bool = False, last_page: Optional[int] = None):
        self.has_more = has_more
        self.last_page = last_page

    def __repr__(self):
        return f"Pagination(has_more={self.has_more}, last_page={self.last_page})"


class CicdRecord:
    """One normalized check run, job, pipeline or build of a commit."""

    # pylint: disable=too-many-arguments
    def __init__(self, sha: str, status_id, name: str = '', status: str = '',
                 ref: str = '', web_url: str = '', event: str = '',
                 detail: bool = True, allow_failure: bool = False):
        self.sha = sha
        self.status_id = str(status_id)
        self.name = name
        self.status = status
        self.ref = ref
        self.web_url = web_url
        self.event = event
        self.detail = detail
        self.allow_failure = allow_failure

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'status': self.status,
            'ref': self.ref,
            'web_url': self.web_url,
            'event': self.event,
            'detail': self.detail,
            'allow_failure': self.allow_failure,
        }

    def __eq__(self, other):
        if not isinstance(other, CicdRecord):
            return NotImplemented
        return (self.sha, self.status_id, self.to_dict()) == \
            (other.sha, other.status_id, other.to_dict())

    def __repr__(self):
        return f"CicdRecord({self.sha!r}, {self.status_id!r}, {self.to_dict()!r})"


def match_owner_repo_url(url: str) -> Optional[CicdTarget]:
    """Match `http(s)://host[:port]/owner/repo[.git]` remotes."""
    parts = split_remote_url(url)
    if parts is None:
        return None
    scheme, hostname, port, path = parts
    owner_repo = split_owner_repo(path)
    if owner_repo is None:
        return None
    return CicdTarget(url, scheme, hostname, port, path, *owner_repo)


def first_string(value: Any) -> str:
    """Return value if it is a non-empty string, else ''."""
    return value if isinstance(value, str) else ''


class CicdAdapter(ABC):
    """Adapter for one CI/CD provider.

    Subclasses must set `provider` and implement every abstract method.
    """

    provider: Provider

    @abstractmethod
    def match_remote_url(self, url: str) -> Optional[CicdTarget]:
        """Parse the configured URL, or return None if it doesn't match."""

    # pylint: disable=too-many-arguments
    @abstractmethod
    def build_request(self, target: CicdTarget, token: str, page: int,
                      detail: bool, commit: str) -> HttpRequest:
        """Build the request for one page of statuses."""

    @abstractmethod
    def parse_rate_limit(self, headers) -> Optional[RateLimitInfo]:
        """Extract rate limit information from response headers."""

    @abstractmethod
    def parse_pagination(self, headers, page: int) -> Pagination:
        """Extract pagination information; malformed headers mean no more pages."""

    @abstractmethod
    def parse_body(self, body: Any, headers, target: CicdTarget,
                   commits: List[str], detail: bool) -> List[CicdRecord]:
        """
        Normalize a decoded response body.

        Args:
            body: Decoded JSON body
            headers: Response headers
            target: Parsed remote the request was sent to
            commits: Candidate commit hashes, the requested one first
            detail: True for a detail fetch, False for a list fetch

        Returns:
            The records found, possibly none

        Raises:
            ParseError: If the body has an unexpected shape
        """
