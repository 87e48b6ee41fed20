from __future__ import annotations

from sqlalchemy import create_engine, inspect

from stockledger.db.run_migrations import main as run_alembic

LEDGER_TABLES = {"items", "item_locations", "locations", "stock_transactions", "repair_tickets"}


def test_upgrade_and_downgrade_initial_schema(tmp_path, monkeypatch):
    db_path = tmp_path / "migrated.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")

    run_alembic(["upgrade", "head"])
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        assert LEDGER_TABLES <= set(inspector.get_table_names())
        item_columns = {c["name"] for c in inspector.get_columns("items")}
        assert {"sku", "barcode", "threshold", "version"} <= item_columns
        uniques = {u["name"] for u in inspector.get_unique_constraints("item_locations")}
        assert "uq_item_locations_item_location" in uniques
    finally:
        engine.dispose()

    run_alembic(["downgrade", "base"])
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        assert not LEDGER_TABLES & set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
