from pathlib import Path


def test_alembic_revision_ids_fit_version_table_limit():
    """alembic_version.version_num is varchar(32) on Postgres."""
    versions_dir = Path(__file__).resolve().parents[2] / "alembic" / "versions"
    migration_files = sorted(versions_dir.glob("*.py"))
    assert migration_files

    too_long: list[tuple[str, str, int]] = []
    for migration_file in migration_files:
        text = migration_file.read_text(encoding="utf-8")
        marker = 'revision = "'
        idx = text.find(marker)
        if idx == -1:
            continue
        start = idx + len(marker)
        end = text.find('"', start)
        revision = text[start:end]
        if len(revision) > 32:
            too_long.append((migration_file.name, revision, len(revision)))

    assert not too_long, f"Alembic revision IDs must be <= 32 chars. Found: {too_long}"


def test_migrations_create_every_model_table():
    from billing_tracker.db import Base
    import billing_tracker.models  # noqa: F401

    versions_dir = Path(__file__).resolve().parents[2] / "alembic" / "versions"
    text = "\n".join(path.read_text(encoding="utf-8") for path in versions_dir.glob("*.py"))
    for table_name in Base.metadata.tables:
        assert f'op.create_table(\n        "{table_name}"' in text
