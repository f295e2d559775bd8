"""Unit tests for gate_engine.models.schema and gate_engine.identifiers."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from gate_engine.errors import InputError, SnapshotNotFoundError
from gate_engine.identifiers import normalize_identifier
from gate_engine.models.schema import (
    ColumnDef,
    Dialect,
    SchemaSnapshot,
    SnapshotDocument,
    TableDef,
    parse_tables_payload,
)

# ---------------------------------------------------------------------------
# normalize_identifier
# ---------------------------------------------------------------------------


class TestNormalizeIdentifier:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Orders", "orders"),
            ('"Order Items"', "order items"),
            ("`Orders`", "orders"),
            ('"a""b"', 'a"b'),
            ('"unterminated', "unterminated"),
            ("  padded ", "padded"),
        ],
    )
    def test_normalisation(self, raw, expected):
        assert normalize_identifier(raw) == expected


# ---------------------------------------------------------------------------
# TableDef / SchemaSnapshot
# ---------------------------------------------------------------------------


class TestTableDef:
    def test_bare_column_names_accepted(self):
        table = TableDef(columns=["id", "Name"])
        assert table.column_names() == ["id", "name"]

    def test_column_type_alias(self):
        column = ColumnDef.model_validate({"name": "id", "type": "integer", "nullable": False})
        assert column.data_type == "integer"
        assert column.nullable is False

    def test_duplicate_columns_after_normalisation_rejected(self):
        with pytest.raises(ValidationError):
            TableDef(columns=["id", '"ID"'])

    def test_has_column(self):
        table = TableDef(columns=["cust_id"])
        assert table.has_column('"CUST_ID"')
        assert not table.has_column("id")


class TestSchemaSnapshot:
    def test_table_keys_normalised(self):
        snapshot = SchemaSnapshot(name="s", tables={'"Orders"': TableDef()})
        assert list(snapshot.tables) == ["orders"]
        assert snapshot.table("ORDERS") is not None

    def test_duplicate_table_keys_rejected(self):
        with pytest.raises(ValidationError):
            SchemaSnapshot(name="s", tables={"Orders": TableDef(), "orders": TableDef()})

    def test_default_dialect(self):
        assert SchemaSnapshot(name="s").dialect is Dialect.POSTGRES

    def test_checksum_tracks_content(self, shop_snapshot):
        changed = shop_snapshot.with_tables({"orders": TableDef(columns=["id"])})
        assert changed.checksum != shop_snapshot.checksum

    def test_with_tables_moves_timestamp(self, shop_snapshot, fixed_time):
        changed = shop_snapshot.with_tables({}, now=fixed_time.replace(year=2030))
        assert changed.updated_at.year == 2030
        assert shop_snapshot.updated_at == fixed_time

    def test_checksum_serialised(self, shop_snapshot):
        assert shop_snapshot.model_dump(by_alias=True)["checksum"] == shop_snapshot.checksum


# ---------------------------------------------------------------------------
# SnapshotDocument
# ---------------------------------------------------------------------------


class TestSnapshotDocument:
    def test_round_trip_layout(self, shop_snapshot):
        payload = SnapshotDocument.from_snapshot(shop_snapshot).to_json()
        assert set(payload) == {"meta", "schema"}
        assert payload["meta"]["name"] == "shop"
        assert payload["meta"]["dialect"] == "postgres"
        assert payload["meta"]["checksum"] == shop_snapshot.checksum
        assert "updatedAt" in payload["meta"]
        assert payload["schema"]["tables"]["orders"]["columns"] == [{"name": "id"}, {"name": "cust_id"}]

        restored = SnapshotDocument.model_validate(payload).to_snapshot()
        assert restored.tables == shop_snapshot.tables
        assert restored.updated_at == shop_snapshot.updated_at

    def test_missing_dialect_defaults_to_postgres(self):
        document = SnapshotDocument.model_validate(
            {
                "meta": {"name": "s", "updatedAt": "2024-01-01T00:00:00Z", "checksum": "00000000"},
                "schema": {"tables": {}},
            }
        )
        assert document.to_snapshot().dialect is Dialect.POSTGRES

    def test_checksum_mismatch_logs_warning(self, shop_snapshot, caplog):
        payload = SnapshotDocument.from_snapshot(shop_snapshot).to_json()
        payload["meta"]["checksum"] = "ffffffff"
        with caplog.at_level(logging.WARNING, logger="gate_engine.models.schema"):
            SnapshotDocument.model_validate(payload).to_snapshot()
        assert "does not match" in caplog.text


# ---------------------------------------------------------------------------
# parse_tables_payload
# ---------------------------------------------------------------------------


class TestParseTablesPayload:
    def test_wrapped_tables(self):
        tables = parse_tables_payload({"tables": {"Orders": {"columns": [{"name": "id"}]}}})
        assert list(tables) == ["orders"]

    def test_bare_mapping(self):
        tables = parse_tables_payload({"orders": {"columns": ["id"]}})
        assert tables["orders"].column_names() == ["id"]

    def test_non_object_rejected(self):
        with pytest.raises(InputError, match="JSON object"):
            parse_tables_payload(["orders"])

    def test_non_object_tables_rejected(self):
        with pytest.raises(InputError):
            parse_tables_payload({"tables": "orders(id)"})

    def test_invalid_column_reports_location(self):
        with pytest.raises(InputError, match="orders"):
            parse_tables_payload({"orders": {"columns": [{"type": "int"}]}})

    def test_duplicate_tables_rejected(self):
        with pytest.raises(InputError):
            parse_tables_payload({"Orders": {}, "orders": {}})


class TestErrors:
    def test_snapshot_not_found_message(self):
        exc = SnapshotNotFoundError("user-1", "prod")
        assert str(exc) == "Schema snapshot 'prod' not found"
        assert isinstance(exc, LookupError)

    def test_input_error_is_value_error(self):
        assert issubclass(InputError, ValueError)
