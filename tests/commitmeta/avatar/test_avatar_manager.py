"""Tests for AvatarManager: lookups, Gravatar fallback, freshness and image files"""

import base64
import hashlib
import logging

import pytest
import schedule

from commitmeta.avatar import AvatarManager, AvatarRequest
from commitmeta.fetching.constants import AVATAR_REFRESH_AGE_MS, IDENTICON_REFRESH_AGE_MS
from commitmeta.fetching.provider import Provider
from commitmeta.repo_registry import RepoRegistry
from commitmeta.storage import MemoryStorage

REPO = '/src/widgets'
EMAIL = 'jane@example.com'
DIGEST = hashlib.md5(EMAIL.encode('utf-8')).hexdigest()
GRAVATAR = f'https://secure.gravatar.com/avatar/{DIGEST}?s=162'
GITHUB_AVATAR = 'https://avatars.githubusercontent.com/u/1?v=4'


def data_uri(content, fmt='png'):
    return f"data:image/{fmt};base64,{base64.b64encode(content).decode('ascii')}"


def router(routes):
    """session.get replacement answering by URL prefix"""
    def get(url, **kwargs):
        for prefix, response in routes:
            if url.startswith(prefix):
                return response
        raise AssertionError(f'Unexpected request to {url}')
    return get


def requested_urls(session):
    return [c[0][0] for c in session.get.call_args_list]


def registry_for(url):
    return RepoRegistry({REPO: {'remotes': {'origin': url}}})


@pytest.fixture
def avatar_folder(tmp_path):
    return tmp_path / 'avatars'


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def create_manager(storage, http_client, avatar_folder, clock):
    managers = []

    def create(remote_url='https://github.com/acme/widgets.git', gitlab_token=''):
        manager = AvatarManager(registry_for(remote_url), storage, str(avatar_folder), http_client,
                                schedule.Scheduler(), gitlab_token=gitlab_token)
        managers.append(manager)
        return manager

    yield create
    for manager in managers:
        manager.dispose()


class TestAvatarFetch:
    """Test where avatars are looked up and how they are stored"""

    def test_github_avatar(self, create_manager, session, make_response, avatar_folder, storage, now_ms):
        """The avatar of the commit author is downloaded, stored and announced"""
        session.get.side_effect = router([
            ('https://api.github.com/', make_response(200, body={'author': {'avatar_url': GITHUB_AVATAR}})),
            (GITHUB_AVATAR, make_response(200, content=b'PNG', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager()
        events = []
        manager.on_update(events.append)

        assert manager.fetch_avatar_image(EMAIL, REPO, ['c1', 'c2']) is None
        session.get.assert_not_called()
        manager.fetch_interval()

        assert requested_urls(session) == [
            'https://api.github.com/repos/acme/widgets/commits/c2',
            GITHUB_AVATAR + '&size=162',
        ]
        assert (avatar_folder / f'{DIGEST}.png').read_bytes() == b'PNG'
        assert events == [{'email': EMAIL, 'image': data_uri(b'PNG')}]
        assert storage.load_initial_cache()[EMAIL] == {
            'image': f'{DIGEST}.png', 'timestamp': now_ms, 'identicon': False}
        assert manager.get_avatar_image(EMAIL) == data_uri(b'PNG')
        assert manager.is_idle

    def test_gitlab_avatar_with_token(self, create_manager, session, make_response):
        session.get.side_effect = router([
            ('https://gitlab.com/api/v4/users', make_response(200, body=[{'avatar_url': 'https://gl/a.jpeg'}])),
            ('https://gl/a.jpeg', make_response(200, content=b'JPG', headers={'Content-Type': 'image/jpeg'})),
        ])
        manager = create_manager('https://gitlab.com/acme/widgets.git', gitlab_token='tok')

        manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
        manager.fetch_interval()

        _, kwargs = session.get.call_args_list[0]
        assert kwargs['headers']['PRIVATE-TOKEN'] == 'tok'
        assert manager.get_avatar_image(EMAIL) == data_uri(b'JPG', 'jpeg')

    def test_other_remote_uses_gravatar_identicon(self, create_manager, session, make_response):
        """Without a registered Gravatar the identicon is stored"""
        session.get.side_effect = router([
            (GRAVATAR + '&d=404', make_response(404)),
            (GRAVATAR + '&d=identicon', make_response(200, content=b'ID', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager('git@github.com:acme/widgets.git')

        manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
        manager.fetch_interval()

        assert len(requested_urls(session)) == 2
        assert manager.get_avatars()[EMAIL]['identicon'] is True

    def test_registered_gravatar(self, create_manager, session, make_response):
        session.get.side_effect = router([
            (GRAVATAR + '&d=404', make_response(200, content=b'GR', headers={'Content-Type': 'image/jpeg'})),
        ])
        manager = create_manager('https://git.example.com/acme/widgets.git')

        manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
        manager.fetch_interval()

        assert requested_urls(session) == [GRAVATAR + '&d=404']
        assert manager.get_avatars()[EMAIL]['identicon'] is False

    def test_github_without_avatar_falls_back(self, create_manager, session, make_response):
        session.get.side_effect = router([
            ('https://api.github.com/', make_response(200, body={'author': None})),
            (GRAVATAR + '&d=404', make_response(200, content=b'GR', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager()

        manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
        manager.fetch_interval()

        assert manager.get_avatar_image(EMAIL) == data_uri(b'GR')

    def test_github_error_falls_back(self, create_manager, session, make_response, caplog):
        session.get.side_effect = router([
            ('https://api.github.com/', make_response(404, body={'message': 'Not Found'})),
            (GRAVATAR + '&d=404', make_response(200, content=b'GR', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager()

        with caplog.at_level(logging.INFO):
            manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
            manager.fetch_interval()

        assert 'GitHub API Error - (404)Not Found' in caplog.text
        assert manager.get_avatar_image(EMAIL) == data_uri(b'GR')

    def test_unknown_commit_tries_older_commit(self, create_manager, session, make_response):
        """422 moves on to the next commit while commits remain, then falls back"""
        session.get.side_effect = router([
            ('https://api.github.com/', make_response(422, body={'message': 'No commit found for SHA'})),
            (GRAVATAR + '&d=404', make_response(404)),
            (GRAVATAR + '&d=identicon', make_response(200, content=b'ID', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager()

        manager.fetch_avatar_image(EMAIL, REPO, ['c1', 'c2'])
        manager.fetch_interval()
        assert manager.queue.items()[0].attempts == 1
        manager.fetch_interval()

        assert requested_urls(session)[:2] == [
            'https://api.github.com/repos/acme/widgets/commits/c2',
            'https://api.github.com/repos/acme/widgets/commits/c1',
        ]
        assert manager.get_avatars()[EMAIL]['identicon'] is True
        assert manager.is_idle

    def test_rate_limited_lookup_is_deferred(self, create_manager, session, make_response):
        session.get.side_effect = router([
            ('https://api.github.com/', make_response(
                403, headers={'X-RateLimit-Remaining': '0', 'X-RateLimit-Reset': '1700000500'})),
        ])
        manager = create_manager()

        manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
        manager.fetch_interval()

        assert manager.rate_limits.get_timeout(Provider.GITHUB) == 1700000500000
        assert manager.queue.items()[0].check_after == 1700000500000
        assert len(requested_urls(session)) == 1

    def test_invalid_json_is_dropped(self, create_manager, session, make_response, caplog):
        session.get.side_effect = router([
            ('https://api.github.com/', make_response(200, content=b'<html>')),
        ])
        manager = create_manager()

        with caplog.at_level(logging.INFO):
            manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
            manager.fetch_interval()

        assert 'GitHub API Error - (200)API Result error.' in caplog.text
        assert len(requested_urls(session)) == 1
        assert manager.get_avatars() == {}

    def test_remote_sources_forgotten_when_drained(self, create_manager, session, make_response):
        session.get.side_effect = router([
            (GRAVATAR, make_response(200, content=b'GR', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager('git@github.com:acme/widgets.git')

        manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
        manager.fetch_interval()

        assert len(manager._remote_sources) == 0  # pylint: disable=protected-access


class TestAvatarCache:
    """Test freshness, the identicon rule and eviction"""

    def write_record(self, storage, avatar_folder, content, timestamp, identicon):
        avatar_folder.mkdir(parents=True, exist_ok=True)
        (avatar_folder / f'{DIGEST}.png').write_bytes(content)
        storage.save_entry(EMAIL, None, None,
                           {'image': f'{DIGEST}.png', 'timestamp': timestamp, 'identicon': identicon})

    @pytest.mark.parametrize('age,identicon,expected', [
        (AVATAR_REFRESH_AGE_MS, False, False),
        (AVATAR_REFRESH_AGE_MS + 1, False, True),
        (IDENTICON_REFRESH_AGE_MS, True, False),
        (IDENTICON_REFRESH_AGE_MS + 1, True, True),
        (IDENTICON_REFRESH_AGE_MS + 1, False, False),
    ])
    def test_is_stale(self, age, identicon, expected):
        now = 10 ** 13
        record = {'image': 'x.png', 'timestamp': now - age, 'identicon': identicon}
        assert AvatarManager.is_stale(record, now) is expected

    def test_fresh_avatar_is_served_without_requests(self, create_manager, storage, avatar_folder,
                                                     session, now_ms):
        self.write_record(storage, avatar_folder, b'REAL', now_ms - 1000, False)
        manager = create_manager()

        assert manager.fetch_avatar_image(EMAIL, REPO, ['c1']) == data_uri(b'REAL')
        session.get.assert_not_called()

    def test_identicon_never_replaces_real_avatar(self, create_manager, storage, avatar_folder,
                                                  session, make_response, now_ms):
        """A stale real avatar refreshed to an identicon only gets a new timestamp"""
        self.write_record(storage, avatar_folder, b'REAL', now_ms - AVATAR_REFRESH_AGE_MS - 1, False)
        session.get.side_effect = router([
            (GRAVATAR + '&d=404', make_response(404)),
            (GRAVATAR + '&d=identicon', make_response(200, content=b'ID', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager('https://git.example.com/acme/widgets.git')
        events = []
        manager.on_update(events.append)

        assert manager.fetch_avatar_image(EMAIL, REPO, ['c1']) == data_uri(b'REAL')
        session.get.assert_not_called()
        manager.fetch_interval()

        assert len(requested_urls(session)) == 2
        assert (avatar_folder / f'{DIGEST}.png').read_bytes() == b'REAL'
        assert manager.get_avatars()[EMAIL] == {
            'image': f'{DIGEST}.png', 'timestamp': now_ms, 'identicon': False}
        assert events == []

    def test_real_avatar_replaces_identicon(self, create_manager, storage, avatar_folder,
                                            session, make_response, now_ms):
        self.write_record(storage, avatar_folder, b'ID', now_ms - IDENTICON_REFRESH_AGE_MS - 1, True)
        session.get.side_effect = router([
            (GRAVATAR + '&d=404', make_response(200, content=b'GR', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager('https://git.example.com/acme/widgets.git')

        manager.fetch_avatar_image(EMAIL, REPO, ['c1'])
        manager.fetch_interval()

        assert manager.get_avatars()[EMAIL]['identicon'] is False
        assert manager.get_avatar_image(EMAIL) == data_uri(b'GR')

    def test_unreadable_image_is_fetched_again(self, create_manager, storage, avatar_folder,
                                               session, make_response, now_ms):
        storage.save_entry(EMAIL, None, None, {'image': f'{DIGEST}.png', 'timestamp': now_ms, 'identicon': False})
        session.get.side_effect = router([
            (GRAVATAR + '&d=404', make_response(200, content=b'GR', headers={'Content-Type': 'image/png'})),
        ])
        manager = create_manager('https://git.example.com/acme/widgets.git')

        assert manager.fetch_avatar_image(EMAIL, REPO, ['c1']) is None
        manager.fetch_interval()

        assert len(requested_urls(session)) == 1
        assert manager.get_avatar_image(EMAIL) == data_uri(b'GR')

    def test_remove_and_clear(self, create_manager, storage, avatar_folder, now_ms):
        self.write_record(storage, avatar_folder, b'REAL', now_ms, False)
        manager = create_manager()

        manager.remove_avatar_from_cache(EMAIL)
        assert manager.get_avatar_image(EMAIL) is None
        assert storage.load_initial_cache() == {}

        self.write_record(storage, avatar_folder, b'REAL', now_ms, False)
        manager = create_manager()
        manager.clear_cache()

        assert manager.get_avatars() == {}
        assert not (avatar_folder / f'{DIGEST}.png').exists()


class TestAvatarRequest:
    def test_merge_appends_newer_commits(self):
        request = AvatarRequest(EMAIL, REPO, commits=['a', 'b'])
        request.merge(AvatarRequest(EMAIL, REPO, commits=['a', 'b', 'c', 'd']))
        assert request.commits == ['a', 'b', 'c', 'd']

    def test_merge_ignores_unrelated_commits(self):
        request = AvatarRequest(EMAIL, REPO, commits=['a', 'b'])
        request.merge(AvatarRequest(EMAIL, REPO, commits=['x', 'y']))
        assert request.commits == ['a', 'b']

    def test_key(self):
        assert AvatarRequest(EMAIL, REPO).key == (EMAIL, REPO)
