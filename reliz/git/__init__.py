"""Git operations used by the release engine.

Usage:
    from reliz.git import Repository

    repo = Repository(Path("/path/to/project"))
    print(repo.current_branch(), repo.latest_tag())
"""

from reliz.git.repository import GitError, Repository, RepositoryProtocol, is_non_fast_forward

__all__ = [
    "GitError",
    "Repository",
    "RepositoryProtocol",
    "is_non_fast_forward",
]
