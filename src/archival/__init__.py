"""Table Archival - moves aging MySQL rows into a PostgreSQL archive store."""

__version__ = "0.1.0"

__all__ = [
    "ArchivalEngine",
    "ArchivalScheduler",
    "ArchiveDatabase",
    "SourceDatabase",
    "SchemaTranslator",
    "BatchMover",
    "RetentionPurger",
    "RunLog",
]
