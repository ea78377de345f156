"""
Commitmeta CI/CD Package

CI/CD status adapters for GitHub (check runs, workflow runs), GitLab
(commit statuses, pipelines) and Jenkins (builds), and the manager
scheduling their requests.
"""

from .baseclass import CicdAdapter, CicdRecord, CicdTarget, Pagination
from .github import GitHubCicd
from .gitlab import GitLabCicd
from .jenkins import JenkinsCicd
from .cicd import CICD_ADAPTERS, get_cicd_adapter
from .cicd_manager import CicdManager, CicdRequest

__all__ = [
    'CicdAdapter',
    'CicdRecord',
    'CicdTarget',
    'Pagination',
    'GitHubCicd',
    'GitLabCicd',
    'JenkinsCicd',
    'CICD_ADAPTERS',
    'get_cicd_adapter',
    'CicdManager',
    'CicdRequest',
]
