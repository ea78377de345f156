from .__pkginfo__ import __version__

# Export the managers and their building blocks for easy import
from .avatar import AvatarManager
from .cicd import CicdManager
from .event import EventEmitter, Subscription
from .repo_registry import RepoRegistry
from .scheduler import SchedulerThread, schedule_every, cancel_job
from .storage import CacheStorage, MemoryStorage, JsonFileStorage

__all__ = [
    '__version__',
    'AvatarManager',
    'CicdManager',
    'EventEmitter',
    'Subscription',
    'RepoRegistry',
    'SchedulerThread',
    'schedule_every',
    'cancel_job',
    'CacheStorage',
    'MemoryStorage',
    'JsonFileStorage',
]
