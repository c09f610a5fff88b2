"""Sprig index database layer."""

from sprig.db.connection import Database, index_db_path
from sprig.db.migrations import MIGRATIONS, run_migrations
from sprig.db.repository import IndexRepository
from sprig.db.schema import initialize, open_index
from sprig.db.vectors import bytes_to_vector, cosine_similarity, vector_to_bytes

__all__ = [
    "Database",
    "IndexRepository",
    "MIGRATIONS",
    "bytes_to_vector",
    "cosine_similarity",
    "index_db_path",
    "initialize",
    "open_index",
    "run_migrations",
    "vector_to_bytes",
]
