"""Git signal exports."""

from recon.git.errors import GitError, NotARepositoryError, RefNotFoundError
from recon.git.models import ChangeStats, GitState, RecentFile
from recon.git.ops import RepoSignals

__all__ = [
    "GitError",
    "NotARepositoryError",
    "RefNotFoundError",
    "ChangeStats",
    "GitState",
    "RecentFile",
    "RepoSignals",
]
