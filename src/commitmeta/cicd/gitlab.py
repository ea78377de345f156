"""GitLab commit statuses and pipelines via the GitLab REST API v4."""

import logging
from typing import Any, List, Optional

from .baseclass import CicdAdapter, CicdRecord, CicdTarget, Pagination, match_owner_repo_url, first_string
from ..fetching.constants import PER_PAGE
from ..fetching.exceptions import ParseError
from ..fetching.http_client import HttpRequest
from ..fetching.provider import Provider
from ..fetching.rate_limit_manager import RateLimitInfo, parse_rate_limit_headers

logger = logging.getLogger(__name__)


def _header_int(headers, name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class GitLabCicd(CicdAdapter):
    """GitLab CI adapter."""

    provider = Provider.GITLAB

    def match_remote_url(self, url: str) -> Optional[CicdTarget]:
        return match_owner_repo_url(url)

    def build_request(self, target: CicdTarget, token: str, page: int,
                      detail: bool, commit: str) -> HttpRequest:
        project = f'{target.owner}%2F{target.repo}'
        if detail:
            path = f'/api/v4/projects/{project}/repository/commits/{commit}/statuses?per_page={PER_PAGE}'
        else:
            path = f'/api/v4/projects/{project}/pipelines?per_page={PER_PAGE}'
        if page > 1:
            path = f'{path}&page={page}'

        headers = {}
        if token:
            headers['PRIVATE-TOKEN'] = token
        return HttpRequest(target.hostname, path, headers, target.port, target.scheme)

    def parse_rate_limit(self, headers) -> Optional[RateLimitInfo]:
        return parse_rate_limit_headers(headers, 'ratelimit-')

    def parse_pagination(self, headers, page: int) -> Pagination:
        current = _header_int(headers, 'x-page')
        total_pages = _header_int(headers, 'x-total-pages')
        if current is None or total_pages is None:
            return Pagination(False, None)
        if headers.get('x-total') is not None and _header_int(headers, 'x-total') is None:
            return Pagination(False, None)
        return Pagination(current < total_pages, total_pages)

    def parse_body(self, body: Any, headers, target: CicdTarget,
                   commits: List[str], detail: bool) -> List[CicdRecord]:
        if not isinstance(body, list):
            raise ParseError('Expected a JSON array', self.provider.display_name)

        records = []
        for entry in body:
            if not isinstance(entry, dict) or entry.get('id') is None:
                continue
            if detail:
                web_url = first_string(entry.get('target_url')) or \
                    f"{target.base_url}/{target.owner}/{target.repo}/-/jobs/{entry['id']}"
                records.append(CicdRecord(
                    commits[0], entry['id'],
                    name=first_string(entry.get('name')),
                    status=first_string(entry.get('status')),
                    ref=first_string(entry.get('ref')),
                    web_url=web_url,
                    detail=True,
                    allow_failure=bool(entry.get('allow_failure', False)),
                ))
            elif entry.get('sha'):
                records.append(CicdRecord(
                    entry['sha'], entry['id'],
                    status=first_string(entry.get('status')),
                    ref=first_string(entry.get('ref')),
                    web_url=first_string(entry.get('web_url')),
                    event=first_string(entry.get('source')),
                    detail=False,
                ))
        return records
