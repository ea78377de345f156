"""
CI/CD provider dispatch table.

Maps every CI/CD Provider to its adapter. Managers look adapters up here
instead of branching on the provider at each call site.
"""
import logging
from typing import Dict

from .baseclass import CicdAdapter
from .github import GitHubCicd
from .gitlab import GitLabCicd
from .jenkins import JenkinsCicd
from ..fetching.provider import Provider

logger = logging.getLogger(__name__)

CICD_ADAPTERS: Dict[Provider, CicdAdapter] = {
    Provider.GITHUB: GitHubCicd(),
    Provider.GITLAB: GitLabCicd(),
    Provider.JENKINS: JenkinsCicd(),
}


def get_cicd_adapter(provider) -> CicdAdapter:
    """
    Look up the adapter of a CI/CD provider.

    Args:
        provider: Provider or its configuration name ('github', 'gitlab', 'jenkins')

    Returns:
        CicdAdapter: The adapter

    Raises:
        RuntimeError: If the provider is unknown or has no CI/CD adapter
    """
    try:
        selected = Provider.from_config(provider)
    except ValueError as e:
        raise RuntimeError(f'[CICD] Unknown provider {provider}') from e
    if selected not in CICD_ADAPTERS:
        raise RuntimeError(f'[CICD] Provider {selected.display_name} has no CI/CD support')
    return CICD_ADAPTERS[selected]
