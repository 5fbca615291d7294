"""Pydantic models describing the outcome of a bootstrap import run."""

from pydantic import BaseModel


class CollectionImport(BaseModel):
    """Result of seeding one collection from its CSV file."""
    database: str
    file: str
    created: bool = False
    imported: int = 0
    rejected: int = 0
    error: str | None = None


class BootstrapReport(BaseModel):
    collections: list[CollectionImport] = []

    @property
    def failed(self) -> list[str]:
        return [c.database for c in self.collections if c.error is not None]

    @property
    def total_imported(self) -> int:
        return sum(c.imported for c in self.collections)
