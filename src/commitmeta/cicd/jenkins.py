"""Jenkins builds via the Jenkins JSON API.

The configured URL points at a job; its builds are listed with the git
revision each build was made from, and matched against the requested
commit hashes.
"""

import base64
import logging
from typing import Any, List, Optional

from .baseclass import CicdAdapter, CicdRecord, CicdTarget, Pagination, first_string
from .github import pagination_from_link
from ..fetching.exceptions import ParseError
from ..fetching.http_client import HttpRequest
from ..fetching.provider import Provider
from ..fetching.rate_limit_manager import RateLimitInfo, parse_rate_limit_headers
from ..fetching.remote_url import split_remote_url

logger = logging.getLogger(__name__)

BUILDS_TREE = 'builds[id,timestamp,fullDisplayName,result,url,actions[lastBuiltRevision[branch[*]]]]'
MIN_JENKINS_VERSION = 2


def jenkins_major_version(headers) -> Optional[int]:
    """Major version from the `x-jenkins` header, None if missing or malformed."""
    version = headers.get('x-jenkins')
    if not isinstance(version, str):
        return None
    try:
        return int(version.strip().split('.')[0])
    except ValueError:
        return None


class JenkinsCicd(CicdAdapter):
    """Jenkins adapter."""

    provider = Provider.JENKINS

    def match_remote_url(self, url: str) -> Optional[CicdTarget]:
        parts = split_remote_url(url)
        if parts is None:
            return None
        scheme, hostname, port, path = parts
        if '/job/' not in path:
            return None
        if not path.endswith('/'):
            path += '/'
        return CicdTarget(url, scheme, hostname, port, path)

    def build_request(self, target: CicdTarget, token: str, page: int,
                      detail: bool, commit: str) -> HttpRequest:
        headers = {}
        if token:
            credentials = base64.b64encode(token.encode('utf-8')).decode('ascii')
            headers['Authorization'] = f'Basic {credentials}'
        return HttpRequest(target.hostname, f'{target.path}api/json?tree={BUILDS_TREE}',
                           headers, target.port, target.scheme)

    def parse_rate_limit(self, headers) -> Optional[RateLimitInfo]:
        return parse_rate_limit_headers(headers, 'ratelimit-')

    def parse_pagination(self, headers, page: int) -> Pagination:
        return pagination_from_link(headers, page)

    def parse_body(self, body: Any, headers, target: CicdTarget,
                   commits: List[str], detail: bool) -> List[CicdRecord]:
        version = jenkins_major_version(headers)
        if version is None or version < MIN_JENKINS_VERSION:
            logger.info('Jenkins API - unsupported Jenkins version (%s)', headers.get('x-jenkins'))
            raise ParseError(f"Unsupported Jenkins version ({headers.get('x-jenkins')})",
                             self.provider.display_name)
        if not isinstance(body, dict) or not isinstance(body.get('builds'), list):
            raise ParseError('Expected a builds list', self.provider.display_name)

        records = []
        seen = set()
        for build in body['builds']:
            if not isinstance(build, dict) or build.get('id') is None:
                continue
            for sha, branch_name in self._revisions(build):
                if detail and sha not in commits:
                    continue
                if (sha, str(build['id'])) in seen:
                    continue
                seen.add((sha, str(build['id'])))
                records.append(CicdRecord(
                    sha, build['id'],
                    name=first_string(build.get('fullDisplayName')),
                    status=first_string(build.get('result')),
                    ref=branch_name,
                    web_url=first_string(build.get('url')),
                    detail=detail,
                ))
        return records

    @staticmethod
    def _revisions(build: dict):
        """Yield (sha, branch name) for every built revision of a build."""
        actions = build.get('actions')
        for action in actions if isinstance(actions, list) else []:
            if not isinstance(action, dict):
                continue
            revision = action.get('lastBuiltRevision')
            if not isinstance(revision, dict) or not isinstance(revision.get('branch'), list):
                continue
            for branch in revision['branch']:
                if isinstance(branch, dict) and isinstance(branch.get('SHA1'), str):
                    yield branch['SHA1'], first_string(branch.get('name'))
