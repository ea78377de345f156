"""
Avatar provider dispatch table.

Decides from a repository's remote URL where the avatars of its commit
authors are looked up.
"""
import logging
from typing import Dict, Optional

from .baseclass import AvatarAdapter, RemoteSource
from .github import GitHubAvatar
from .gitlab import GitLabAvatar
from ..fetching.provider import Provider
from ..fetching.remote_url import split_owner_repo, split_remote_url

logger = logging.getLogger(__name__)

AVATAR_ADAPTERS: Dict[Provider, AvatarAdapter] = {
    Provider.GITHUB: GitHubAvatar(),
    Provider.GITLAB: GitLabAvatar(),
}

REMOTE_HOSTS = {
    'github.com': Provider.GITHUB,
    'gitlab.com': Provider.GITLAB,
}


def match_remote_source(url: Optional[str]) -> RemoteSource:
    """
    Find the avatar source of a remote URL.

    github.com and gitlab.com http(s) remotes use the provider API; every
    other remote, ssh remotes included, uses Gravatar.
    """
    parts = split_remote_url(url)
    if parts is not None:
        _scheme, hostname, _port, path = parts
        provider = REMOTE_HOSTS.get(hostname.lower())
        owner_repo = split_owner_repo(path)
        if provider is not None and owner_repo is not None:
            return RemoteSource(provider, owner_repo[0], owner_repo[1])
    return RemoteSource(Provider.GRAVATAR)


def get_avatar_adapter(provider: Provider) -> Optional[AvatarAdapter]:
    """Adapter of an API provider; None for Gravatar, which needs no lookup."""
    return AVATAR_ADAPTERS.get(provider)
