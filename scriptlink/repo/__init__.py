"""Repository access: the query capability interface and its git implementation."""

from scriptlink.repo.query import (
    Commit,
    RepositoryQuery,
    TreeBlob,
    TreeMatch,
    TreeNode,
    relative_to_repository,
    search_commit,
    tree_search,
)
from scriptlink.repo.git import GitRepository

__all__ = [
    "Commit",
    "GitRepository",
    "RepositoryQuery",
    "TreeBlob",
    "TreeMatch",
    "TreeNode",
    "relative_to_repository",
    "search_commit",
    "tree_search",
]
