"""
Commitmeta Avatar Package

Avatar lookups on GitHub and GitLab with Gravatar as fallback, and the
manager scheduling them and storing the images.
"""

from .baseclass import AvatarAdapter, RemoteSource, email_hash, mask_email
from .github import GitHubAvatar
from .gitlab import GitLabAvatar
from .gravatar import gravatar_urls
from .avatar import AVATAR_ADAPTERS, get_avatar_adapter, match_remote_source
from .avatar_manager import AvatarManager, AvatarRequest

__all__ = [
    'AvatarAdapter',
    'RemoteSource',
    'email_hash',
    'mask_email',
    'GitHubAvatar',
    'GitLabAvatar',
    'gravatar_urls',
    'AVATAR_ADAPTERS',
    'get_avatar_adapter',
    'match_remote_source',
    'AvatarManager',
    'AvatarRequest',
]
