"""GitHub Actions check runs and workflow runs via the GitHub REST API v3.

Detail fetch: /repos/{owner}/{repo}/commits/{sha}/check-runs
List fetch:   /repos/{owner}/{repo}/actions/runs

Pages are announced in the `Link` header; the page of the `rel="last"`
link tells how many pages exist.
"""

import re
import logging
from typing import Any, List, Optional

from .baseclass import CicdAdapter, CicdRecord, CicdTarget, Pagination, match_owner_repo_url, first_string
from ..fetching.constants import PER_PAGE
from ..fetching.exceptions import ParseError
from ..fetching.http_client import HttpRequest
from ..fetching.provider import Provider
from ..fetching.rate_limit_manager import RateLimitInfo, parse_rate_limit_headers

logger = logging.getLogger(__name__)

PAGE_PARAM_PATTERN = re.compile(r'[?&]page=(\d+)(?:&|$)')


def parse_link_header(link: Optional[str]) -> dict:
    """
    Parse a RFC 5988 Link header into {rel: page number}.

    Links without a parsable page number are skipped.
    """
    pages = {}
    if not isinstance(link, str):
        return pages
    for part in link.split(','):
        segments = part.split(';')
        url_part = segments[0].strip()
        if not url_part.startswith('<') or not url_part.endswith('>'):
            continue
        match = PAGE_PARAM_PATTERN.search(url_part[1:-1])
        if match is None:
            continue
        for segment in segments[1:]:
            rel = segment.strip().split('=', 1)
            if len(rel) < 2 or rel[0].strip() != 'rel':
                continue
            pages[rel[1].strip().strip('"')] = int(match.group(1))
    return pages


def pagination_from_link(headers, page: int) -> Pagination:
    pages = parse_link_header(headers.get('link'))
    last_page = pages.get('last')
    if last_page is not None:
        return Pagination(page < last_page, last_page)
    if 'next' in pages:
        return Pagination(True, None)
    return Pagination(False, None)


class GitHubCicd(CicdAdapter):
    """GitHub Actions adapter."""

    provider = Provider.GITHUB

    def match_remote_url(self, url: str) -> Optional[CicdTarget]:
        target = match_owner_repo_url(url)
        if target is None:
            return None
        target.hostname = 'api.' + target.hostname
        return target

    def build_request(self, target: CicdTarget, token: str, page: int,
                      detail: bool, commit: str) -> HttpRequest:
        if detail:
            path = f'/repos/{target.owner}/{target.repo}/commits/{commit}/check-runs?per_page={PER_PAGE}'
        else:
            path = f'/repos/{target.owner}/{target.repo}/actions/runs?per_page={PER_PAGE}'
        if page > 1:
            path = f'{path}&page={page}'

        headers = {'Accept': 'application/vnd.github.v3+json'}
        if token:
            headers['Authorization'] = f'token {token}'
        return HttpRequest(target.hostname, path, headers, target.port, target.scheme)

    def parse_rate_limit(self, headers) -> Optional[RateLimitInfo]:
        return parse_rate_limit_headers(headers, 'x-ratelimit-')

    def parse_pagination(self, headers, page: int) -> Pagination:
        return pagination_from_link(headers, page)

    def parse_body(self, body: Any, headers, target: CicdTarget,
                   commits: List[str], detail: bool) -> List[CicdRecord]:
        if not isinstance(body, dict):
            raise ParseError('Expected a JSON object', self.provider.display_name)

        if detail:
            return self._parse_check_runs(body.get('check_runs'), commits[0])
        return self._parse_workflow_runs(body.get('workflow_runs'))

    @staticmethod
    def _status(run: dict) -> str:
        conclusion = run.get('conclusion')
        return first_string(conclusion if conclusion is not None else run.get('status'))

    def _parse_check_runs(self, runs, commit: str) -> List[CicdRecord]:
        records = []
        for run in runs if isinstance(runs, list) else []:
            if not isinstance(run, dict) or run.get('id') is None:
                continue
            name = first_string(run.get('name'))
            app = run.get('app')
            if isinstance(app, dict) and app.get('name'):
                name = f"{app['name']}({name})"
            records.append(CicdRecord(
                commit, run['id'],
                name=name,
                status=self._status(run),
                web_url=first_string(run.get('html_url')),
                detail=True,
            ))
        return records

    def _parse_workflow_runs(self, runs) -> List[CicdRecord]:
        records = []
        for run in runs if isinstance(runs, list) else []:
            if not isinstance(run, dict) or run.get('id') is None or not run.get('head_sha'):
                continue
            records.append(CicdRecord(
                run['head_sha'], run['id'],
                name=first_string(run.get('name')),
                status=self._status(run),
                ref=first_string(run.get('head_branch')),
                web_url=first_string(run.get('html_url')),
                event=first_string(run.get('event')),
                detail=False,
            ))
        return records
