"""Matching of http(s) git remote URLs.

Only `http://` and `https://` remotes are understood. SSH remotes
(`git@host:owner/repo.git`) and other schemes never match.
"""

import re
from typing import Optional, Tuple

# scheme, optional userinfo, host, optional port, rest
REMOTE_URL_PATTERN = re.compile(
    r'^(https?)://((?=[^/]+@)[^@]+@|(?![^/]+@))([^/:]+)(?::(\d+))?(/.*)?$'
)
OWNER_REPO_PATTERN = re.compile(r'^/([^/]+)/([^/]+?)(?:\.git)?/?$')


def split_remote_url(url) -> Optional[Tuple[str, str, str, str]]:
    """Split an http(s) remote URL into scheme, host, port and path.

    Returns:
        (scheme, hostname, port, path), port and path possibly empty, or
        None for ssh, ftp and other remotes
    """
    if not isinstance(url, str):
        return None
    match = REMOTE_URL_PATTERN.match(url.strip())
    if match is None:
        return None
    return match.group(1), match.group(3), match.group(4) or '', match.group(5) or ''


def split_owner_repo(path: str) -> Optional[Tuple[str, str]]:
    """Split `/owner/repo[.git]` into (owner, repo)."""
    match = OWNER_REPO_PATTERN.match(path)
    if match is None:
        return None
    return match.group(1), match.group(2)
