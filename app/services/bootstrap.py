"""Bootstrap importer - seeds the Cloudant databases from CSV files.

Runs once at startup, before the API starts serving. For each fixed
(database, file) pair it creates the database (an existing one is fine),
reads the CSV with header-derived field names and sends every row as a
document in a single ``_bulk_docs`` call.

A failure in one database is logged and the run moves on to the next one.
There is no retry and no duplicate detection, so restarting the service
imports the same rows again.
"""

import csv
import logging
from pathlib import Path

from app.database import DocumentStore, DocumentStoreError
from app.models.bootstrap import BootstrapReport, CollectionImport

logger = logging.getLogger(__name__)

# Fixed seeding table: database name -> CSV file under the data directory
BOOTSTRAP_DATABASES: dict[str, str] = {
    "allergies": "allergies.csv",
    "appointments": "appointments.csv",
    "observations": "observations.csv",
    "organizations": "organizations.csv",
    "patients": "patients.csv",
    "prescriptions": "prescriptions.csv",
    "providers": "providers.csv",
}

DATABASE_EXISTS_STATUS = 412


class CsvImportError(Exception):
    """Raised when a CSV file cannot be turned into documents."""


def read_csv_records(path: Path) -> list[dict[str, str]]:
    """Parse a CSV file into one dict per row, keyed by the header.

    Blank lines are skipped. A missing or empty file gives no records.

    Raises:
        CsvImportError: if a row has more or fewer fields than the header.
    """
    if not path.exists():
        logger.warning("  -> CSV file %s not found, nothing to import", path)
        return []

    records: list[dict[str, str]] = []
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f, delimiter=",")
        for row in reader:
            if None in row or None in row.values():
                raise CsvImportError(
                    f"Invalid record length on line {reader.line_num} of {path}: "
                    f"expected {len(reader.fieldnames or [])} fields"
                )
            records.append(dict(row))
    return records


async def ensure_database(store: DocumentStore, database: str) -> bool:
    """Create a database, returning False when it already existed."""
    try:
        await store.put_database(database)
    except DocumentStoreError as e:
        if e.status_code == DATABASE_EXISTS_STATUS:
            logger.info('  -> Database "%s" already exists.', database)
            return False
        logger.error('  -> Error creating database "%s": %s', database, e)
        raise
    logger.info('  -> Created database "%s".', database)
    return True


async def import_csv_data(store: DocumentStore, database: str, path: Path) -> tuple[int, int]:
    """Bulk insert every row of ``path`` into ``database``.

    Returns:
        (documents sent, documents rejected by the server)
    """
    documents = read_csv_records(path)
    if not documents:
        logger.info('  -> No rows in "%s", nothing imported into "%s".', path, database)
        return 0, 0

    try:
        results = await store.post_bulk_docs(database, documents)
    except DocumentStoreError as e:
        logger.error('  -> Error during bulk insert into "%s" from "%s": %s', database, path, e)
        raise

    rejected = [r for r in results or [] if isinstance(r, dict) and r.get("error")]
    if rejected:
        logger.warning(
            '  -> %d of %d documents rejected by "%s" (first: %s)',
            len(rejected), len(documents), database, rejected[0].get("reason") or rejected[0].get("error"),
        )
    logger.info('  -> Successfully imported %d documents into "%s".', len(documents) - len(rejected), database)
    return len(documents), len(rejected)


async def bootstrap_databases(
    store: DocumentStore,
    data_dir: str | Path,
    databases: dict[str, str] | None = None,
) -> BootstrapReport:
    """Create and seed every bootstrap database, one after another."""
    data_dir = Path(data_dir)
    report = BootstrapReport()

    for database, filename in (databases or BOOTSTRAP_DATABASES).items():
        path = data_dir / filename
        entry = CollectionImport(database=database, file=str(path))
        report.collections.append(entry)
        logger.info("Processing database: %s from file: %s", database, path)

        try:
            entry.created = await ensure_database(store, database)
            sent, rejected = await import_csv_data(store, database, path)
            entry.imported = sent - rejected
            entry.rejected = rejected
        except (DocumentStoreError, CsvImportError, csv.Error, OSError, ValueError) as e:
            logger.error("Error processing %s: %s", database, e)
            entry.error = str(e) or e.__class__.__name__

    logger.info(
        "Done importing data: %d documents, %d failed database(s)",
        report.total_imported, len(report.failed),
    )
    return report
