"""Git module error types."""


class GitError(Exception):
    """Base error for git operations."""

    pass


class NotARepositoryError(GitError):
    """Path is not inside a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class RefNotFoundError(GitError):
    """Revision could not be resolved to a commit."""

    def __init__(self, ref: str) -> None:
        super().__init__(f"Reference not found: {ref}")
        self.ref = ref
