"""groundwork corpus store: SQLite + sqlite-vec."""

from groundwork.db.connection import Database
from groundwork.db.migrations import MIGRATIONS, run_migrations
from groundwork.db.repository import Repository
from groundwork.db.schema import initialize
from groundwork.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
