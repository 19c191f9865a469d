from .base import PostRepository, Repositories, UserRepository
from .memory import InMemoryStore, build_memory_repositories
from .sql import build_sql_repositories

__all__ = [
    "PostRepository",
    "Repositories",
    "UserRepository",
    "InMemoryStore",
    "build_memory_repositories",
    "build_sql_repositories",
]
