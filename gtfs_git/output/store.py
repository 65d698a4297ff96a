"""Git object store backed by GitPython."""

import logging
from io import BytesIO
from pathlib import Path

from git import Actor, Repo
from git.exc import GitError
from git.objects import Blob, Commit, Tree
from git.objects.fun import tree_to_stream
from git.refs import Head
from gitdb.base import IStream
from gitdb.exc import ODBError

from gtfs_git.errors import RepositoryWriteError

logger = logging.getLogger(__name__)

FILE_MODE = 0o100644


class GitObjectStore:
    """
    Write content-addressed objects and branch references into a repository.

    Objects are written straight into the loose object database, so nothing
    is staged and no working tree is touched. Commit and tree objects are
    built from ids alone; parents are never read back.
    """

    def __init__(self, repo: Repo, author: Actor) -> None:
        """Initialize store with an open repository and the commit identity."""
        self.repo = repo
        self.author = author

    @classmethod
    def open(
        cls,
        git_dir: str | Path,
        author_name: str = "gtfs-git",
        author_email: str = "gtfs-git@localhost",
    ) -> "GitObjectStore":
        """Open the repository at ``git_dir``, creating it if needed."""
        path = Path(git_dir)
        try:
            if (path / ".git").is_dir():
                logger.info(f"Reusing Git repository in {path}")
                repo = Repo(str(path))
            else:
                logger.info(f"Creating the Git repository in {path}")
                repo = Repo.init(str(path), mkdir=True)
            # Fan-out directories exist up front so concurrent writers never race on mkdir
            objects_dir = Path(repo.git_dir) / "objects"
            for i in range(256):
                (objects_dir / f"{i:02x}").mkdir(parents=True, exist_ok=True)
        except (OSError, GitError) as e:
            raise RepositoryWriteError(f"Cannot open repository {path}: {e}") from e

        return cls(repo, Actor(author_name, author_email))

    @property
    def git_dir(self) -> Path:
        return Path(self.repo.git_dir)

    def _store(self, type_name: str, data: bytes) -> str:
        try:
            istream = self.repo.odb.store(IStream(type_name, len(data), BytesIO(data)))
        except (OSError, ODBError) as e:
            raise RepositoryWriteError(f"Failed to write {type_name} object: {e}") from e
        return istream.binsha.hex()

    def create_blob(self, data: bytes) -> str:
        """Write a blob and return its id."""
        return self._store(Blob.type, data)

    def create_tree(self, entries: list[tuple[str, str]]) -> str:
        """Write a flat tree of regular files given as (name, blob id) pairs."""
        items = sorted(
            ((bytes.fromhex(blob_id), FILE_MODE, name) for name, blob_id in entries),
            key=lambda item: item[2].encode("utf-8"),
        )
        buf = BytesIO()
        tree_to_stream(items, buf.write)
        return self._store(Tree.type, buf.getvalue())

    def create_commit(
        self, parents: list[str], tree: str, message: str, timestamp: int
    ) -> str:
        """Write a commit; author and committer dates are both ``timestamp`` (UTC)."""
        date = f"{timestamp} +0000"
        try:
            commit = Commit.create_from_tree(
                self.repo,
                Tree(self.repo, bytes.fromhex(tree)),
                message,
                parent_commits=[Commit(self.repo, bytes.fromhex(p)) for p in parents],
                head=False,
                author=self.author,
                committer=self.author,
                author_date=date,
                commit_date=date,
            )
        except (OSError, GitError, ODBError) as e:
            raise RepositoryWriteError(f"Failed to write commit: {e}") from e
        return commit.hexsha

    def update_ref(self, name: str, commit_id: str) -> None:
        """Point ``refs/heads/<name>`` at ``commit_id``, replacing any previous target."""
        try:
            Head(self.repo, f"refs/heads/{name}").set_commit(
                Commit(self.repo, bytes.fromhex(commit_id))
            )
        except (OSError, GitError, ValueError) as e:
            raise RepositoryWriteError(f"Failed to update branch {name}: {e}") from e

    def set_head(self, name: str) -> None:
        """Make HEAD a symbolic reference to branch ``name``."""
        try:
            self.repo.head.set_reference(Head(self.repo, f"refs/heads/{name}"))
        except (OSError, GitError, ValueError) as e:
            raise RepositoryWriteError(f"Failed to set HEAD to {name}: {e}") from e
