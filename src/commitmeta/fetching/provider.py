"""Provider enumeration shared by the CI and avatar schedulers."""

from enum import Enum


class Provider(Enum):
    """Remote services metadata can be fetched from.

    The value is the name used in configuration files.
    """
    GITHUB = 'github'
    GITLAB = 'gitlab'
    JENKINS = 'jenkins'
    GRAVATAR = 'gravatar'

    @property
    def display_name(self) -> str:
        """Name used in log messages."""
        return _DISPLAY_NAMES[self]

    @classmethod
    def from_config(cls, name) -> 'Provider':
        """Look up a provider by its configuration name.

        Raises:
            ValueError: If the name is not a known provider
        """
        if isinstance(name, Provider):
            return name
        return cls(str(name).strip().lower())


_DISPLAY_NAMES = {
    Provider.GITHUB: 'GitHub',
    Provider.GITLAB: 'GitLab',
    Provider.JENKINS: 'Jenkins',
    Provider.GRAVATAR: 'Gravatar',
}
