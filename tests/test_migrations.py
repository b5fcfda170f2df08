"""The hand-written initial migration must agree with the ORM models."""

import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

import sqlalchemy as sa

from universe_radar.models import Base

MIGRATION = Path(__file__).parents[1] / "migrations" / "versions" / "0001_initial_schema.py"


def _created_tables(monkeypatch):
    spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    op = MagicMock()
    monkeypatch.setattr(module, "op", op)

    module.upgrade()

    return {call.args[0]: call.args[1:] for call in op.create_table.call_args_list}


def test_every_model_table_is_created(monkeypatch):
    assert set(_created_tables(monkeypatch)) == set(Base.metadata.tables)


def test_primary_keys_follow_naming_convention(monkeypatch):
    for table_name, elements in _created_tables(monkeypatch).items():
        # Key columns are declared only through the named constraint
        assert not any(isinstance(e, sa.Column) and e.primary_key for e in elements), table_name
        assert sum(isinstance(e, sa.PrimaryKeyConstraint) for e in elements) == 1, table_name

        table = sa.Table(table_name, sa.MetaData(), *elements)
        model_pk = Base.metadata.tables[table_name].primary_key

        assert table.primary_key.name == f"pk_{table_name}"
        assert [c.name for c in table.primary_key.columns] == [c.name for c in model_pk.columns]
        assert all(not c.nullable for c in table.primary_key.columns)
