"""Tests for the repository registry"""

from commitmeta.repo_registry import RepoRegistry


class TestRepoRegistry:
    def setup_method(self):
        self.registry = RepoRegistry.from_config({'repositories': {
            '/src/widgets': {
                'remotes': {'upstream': 'https://github.com/acme/widgets.git',
                            'origin': 'https://github.com/jane/widgets.git'},
                'cicd': [{'provider': 'github', 'url': 'https://github.com/acme/widgets.git'}],
            },
            '/src/empty': None,
        }})

    def test_default_remote_is_origin(self):
        assert self.registry.get_remote_url('/src/widgets') == 'https://github.com/jane/widgets.git'

    def test_named_remote(self):
        assert self.registry.get_remote_url('/src/widgets', 'upstream') == 'https://github.com/acme/widgets.git'
        assert self.registry.get_remote_url('/src/widgets', 'missing') is None

    def test_first_remote_without_origin(self):
        self.registry.set_repo('/src/gadgets', {'fork': 'https://gitlab.com/jane/gadgets.git'})
        assert self.registry.get_remote_url('/src/gadgets') == 'https://gitlab.com/jane/gadgets.git'

    def test_repo_without_remotes(self):
        assert self.registry.get_remote_url('/src/empty') is None
        assert self.registry.get_cicd_configs('/src/empty') == []

    def test_cicd_configs_are_copies(self):
        configs = self.registry.get_cicd_configs('/src/widgets')
        configs[0]['token'] = 'changed'
        assert 'token' not in self.registry.get_cicd_configs('/src/widgets')[0]

    def test_remove_repo(self):
        self.registry.remove_repo('/src/widgets')
        assert sorted(self.registry.list_repos()) == ['/src/empty']
        assert self.registry.get_cicd_configs('/src/widgets') == []
