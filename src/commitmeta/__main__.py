import argparse
import json
import logging
import os
import sys
import time

from .avatar import AvatarManager
from .cicd import CicdManager
from .fetching import DEFAULT_MAXIMUM_STATUSES, DEFAULT_USER_AGENT, HttpClientManager
from .repo_registry import RepoRegistry
from .scheduler import SchedulerThread
from .setup import setup_logging, load_config
from .storage import JsonFileStorage


CONFIGFILE = "config/commitmeta_config.yaml"
LOGFILE_ENABLED_DEFAULT = False
LOGFILE = "logs/commitmeta.log"
STATE_PATH = "state"
WAIT_TIMEOUT = 120  # seconds to wait for the queues to drain
WAIT_STEP = 0.5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='commitmeta',
                                     description='Fetch and cache CI/CD statuses and avatars of git commits')
    parser.add_argument('--config', default=CONFIGFILE, help='Path to the config file')
    parser.add_argument('--timeout', type=float, default=WAIT_TIMEOUT,
                        help='Seconds to wait for pending requests')
    subparsers = parser.add_subparsers(dest='command', required=True)

    status = subparsers.add_parser('status', help='CI/CD statuses of a commit')
    status.add_argument('repo', help='Repository path as configured')
    status.add_argument('hash', help='Commit hash')

    runs = subparsers.add_parser('runs', help='Recent CI/CD runs of a repository')
    runs.add_argument('repo', help='Repository path as configured')

    avatar = subparsers.add_parser('avatar', help='Avatar of a commit author')
    avatar.add_argument('email', help='Author email')
    avatar.add_argument('repo', help='Repository path as configured')
    avatar.add_argument('commits', nargs='+', help='Commits of the author, oldest first')
    avatar.add_argument('--remote', default=None, help='Remote to look the avatar up on')

    subparsers.add_parser('clear-cache', help='Remove all cached statuses and avatars')
    return parser


def configure_logging(config: dict) -> None:
    loglevel = config.get('loglevel', 'info')
    logfile_enabled = config.get('logfile_enabled', LOGFILE_ENABLED_DEFAULT)
    log_everything = config.get('log_everything', False)
    max_logfile_size = config.get('max_logfile_size', 200)  # Default 200KB
    logfile_path = config.get('logfile_path', LOGFILE)
    logfile = logfile_path if logfile_enabled else None

    loglevel_mapping = {
        'debug': logging.DEBUG,
        'warning': logging.WARNING,
        'error': logging.ERROR,
        'info': logging.INFO
    }

    setup_logging(level=loglevel_mapping.get(loglevel, logging.INFO), logfile=logfile,
                  max_logfile_size_kb=max_logfile_size)

    if not log_everything:
        logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
        logging.getLogger("commitmeta.scheduler").setLevel(logging.INFO)


def create_managers(config: dict):
    """Create the CI/CD and avatar managers from the configuration."""
    registry = RepoRegistry.from_config(config)
    state_path = config.get('state_path', STATE_PATH)
    user_agent = config.get('user_agent', DEFAULT_USER_AGENT)
    cicd_config = config.get('cicd') or {}
    avatar_config = config.get('avatar') or {}

    cicd_manager = CicdManager(
        registry,
        JsonFileStorage(os.path.join(state_path, 'cicd_cache.json')),
        HttpClientManager(user_agent=user_agent),
        maximum_statuses=int(cicd_config.get('maximum_statuses', DEFAULT_MAXIMUM_STATUSES)),
    )
    avatar_manager = AvatarManager(
        registry,
        JsonFileStorage(os.path.join(state_path, 'avatar_cache.json')),
        config.get('avatar_storage_path', os.path.join(state_path, 'avatars')),
        HttpClientManager(user_agent=user_agent),
        gitlab_token=avatar_config.get('gitlab_token') or '',
    )
    return cicd_manager, avatar_manager


def wait_until_idle(managers, timeout: float) -> bool:
    """Wait until no manager has pending requests; False on timeout."""
    deadline = time.time() + timeout
    while not all(m.is_idle for m in managers):
        if time.time() >= deadline:
            return False
        time.sleep(WAIT_STEP)
    return True


# pylint: disable=too-many-locals
def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Configure a basic logger to be able to log even before the configuration is loaded
    setup_logging(level=logging.INFO)
    logger = logging.getLogger(__name__)
    logger.info('Looking for config file at %s', args.config)

    try:
        config = load_config(args.config)
    except RuntimeError as e:
        logger.error('%s', e)
        return 1

    configure_logging(config)
    logger = logging.getLogger(__name__)

    cicd_manager, avatar_manager = create_managers(config)
    managers = [cicd_manager, avatar_manager]
    runner = SchedulerThread([m.scheduler for m in managers])
    for manager in managers:
        manager.set_wakeup(runner.wake)
    runner.start()

    collected = {}
    subscription = cicd_manager.on_update(
        lambda event: collected.setdefault(event['hash'], {}).update(event['statuses'])
    )
    try:
        if args.command == 'clear-cache':
            cicd_manager.clear_cache()
            avatar_manager.clear_cache()
            return 0

        if args.command == 'status':
            cicd_manager.fetch_cicd_status(args.repo, args.hash)
        elif args.command == 'runs':
            cicd_manager.fetch_list(args.repo)
        elif args.command == 'avatar':
            avatar_manager.fetch_avatar_image(args.email, args.repo, args.commits, args.remote)

        if not wait_until_idle(managers, args.timeout):
            logger.warning('Requests still pending after %d seconds', int(args.timeout))

        if args.command == 'status':
            output = cicd_manager.get_cicds(args.repo, args.hash)
        elif args.command == 'runs':
            output = collected
        else:
            output = {'email': args.email, 'image': avatar_manager.get_avatar_image(args.email)}
        print(json.dumps(output, indent=2, sort_keys=True))
        return 0
    except KeyboardInterrupt:
        print("Shutting down", file=sys.stderr)
        return 130
    finally:
        subscription.dispose()
        runner.stop()
        for manager in managers:
            manager.dispose()


if __name__ == '__main__':
    sys.exit(main())
