"""Gravatar image URLs."""

from typing import Tuple

from .baseclass import email_hash
from ..fetching.constants import AVATAR_SIZE

GRAVATAR_BASE_URL = 'https://secure.gravatar.com/avatar/'


def gravatar_urls(email: str) -> Tuple[str, str]:
    """
    Image URLs of an email on Gravatar.

    Returns:
        (url answering 404 when no avatar is registered, identicon url)
    """
    base = f'{GRAVATAR_BASE_URL}{email_hash(email)}?s={AVATAR_SIZE}'
    return f'{base}&d=404', f'{base}&d=identicon'
