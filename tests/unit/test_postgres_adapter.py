"""
Unit tests for the PostgreSQL adapters without a database.

Tests verify:
- Connection failures and pool timeouts surface as UpstreamUnavailable
- The pooled connection timeout is passed through
- Member updates reject unknown fields before touching the pool
- Fee, line item and association level JSON mapping preserves every field
- Migration scripts run in filename order and stop at the first failure
"""

from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import psycopg
import pytest
from psycopg_pool import PoolTimeout

from src.adapters.repository.postgres import (
    PostgresMemberStore,
    PostgresOrganizationStore,
    PostgresRegistrationStore,
    _fee_from_json,
    _fee_to_json,
    _item_from_json,
    _item_to_json,
    _level_from_json,
    _level_to_json,
    _membership_from_json,
    _membership_to_json,
    run_migrations,
)
from src.domain.exceptions import UpstreamUnavailable
from src.domain.models import (
    AssociationRegistration,
    Fee,
    FeeLineItem,
    FeeScope,
    MembershipRecord,
    MembershipRenewal,
    OwnerType,
    RegistrationStatus,
)


class TestUnavailable:
    """Tests for outage mapping."""

    def test_pool_timeout_is_upstream_unavailable(self) -> None:
        """PoolTimeout is an OperationalError and maps to UpstreamUnavailable."""
        pool = MagicMock()
        pool.connection.side_effect = PoolTimeout("couldn't get a connection after 5.00 sec")

        with pytest.raises(UpstreamUnavailable):
            PostgresOrganizationStore(pool, timeout=5.0).get_club("C1")

    def test_operational_error_is_upstream_unavailable(self) -> None:
        pool = MagicMock()
        pool.connection.side_effect = psycopg.OperationalError("connection refused")

        with pytest.raises(UpstreamUnavailable):
            PostgresRegistrationStore(pool).get_registration("REG-1")

    def test_timeout_passed_to_pool(self) -> None:
        pool = MagicMock()
        pool.connection.side_effect = PoolTimeout("timeout")

        with pytest.raises(UpstreamUnavailable):
            PostgresOrganizationStore(pool, timeout=1.5).get_association("HA")

        pool.connection.assert_called_once_with(timeout=1.5)

    def test_unknown_member_field_rejected_without_query(self) -> None:
        pool = MagicMock()

        with pytest.raises(ValueError, match="id"):
            PostgresMemberStore(pool).update_member("M-1", {"id": "M-2"})

        pool.connection.assert_not_called()


class TestJsonMapping:
    """Tests for JSONB document mapping."""

    def test_fee_round_trip(self) -> None:
        fee = Fee(
            id="F",
            name="Kit",
            amount=2500,
            categories=("junior", "masters"),
            role_categories=("coach",),
            applies_to=FeeScope.TEAM,
            valid_from=date(2026, 1, 1),
            valid_to=date(2026, 6, 30),
            is_active=False,
            supersedes_key="uniform",
            min_age=5,
            max_age=9,
            gst_included=False,
            description="Shirt and socks",
        )

        assert _fee_from_json(_fee_to_json(fee)) == fee

    def test_sparse_fee_document_uses_defaults(self) -> None:
        fee = _fee_from_json({"id": "F", "name": "Levy", "amount": 4500})

        assert fee.categories == ("*",)
        assert fee.role_categories == ()
        assert fee.applies_to is FeeScope.PLAYER
        assert fee.is_active is True

    def test_line_item_round_trip(self) -> None:
        item = FeeLineItem(
            fee_id="HA-INS-J",
            name="Insurance",
            categories=("junior",),
            amount=2000,
            gst_included=True,
            gst=182,
            source_type=OwnerType.ASSOCIATION,
            source_id="HA",
            source_name="Hockey Australia",
            level=0,
            override_key="insurance",
            superseded=True,
            superseded_by="NS-INS",
        )

        assert _item_from_json(_item_to_json(item)) == item

    def test_membership_round_trip(self) -> None:
        membership = MembershipRecord(
            type="player",
            period_start=date(2026, 1, 1),
            period_end=date(2026, 12, 31),
            renewals=[MembershipRenewal(season=2026, club_id="C1", renewed_on=date(2026, 3, 1))],
        )

        assert _membership_from_json(_membership_to_json(membership)) == membership

    def test_association_level_round_trip(self) -> None:
        item = FeeLineItem(
            fee_id="BHA-REG",
            name="Regional Registration",
            categories=("*",),
            amount=5500,
            gst_included=True,
            gst=500,
            source_type=OwnerType.ASSOCIATION,
            source_id="BHA",
            source_name="Brisbane Hockey",
            level=2,
        )
        level = AssociationRegistration(
            association_id="BHA",
            association_name="Brisbane Hockey",
            level=2,
            status=RegistrationStatus.PENDING,
            fee_items=(item,),
        )

        assert _level_from_json(_level_to_json(level)) == level


class TestRunMigrations:
    """Tests for applying schema scripts."""

    def test_missing_directory_applies_nothing(self, tmp_path: Path) -> None:
        pool = MagicMock()

        assert run_migrations(pool, tmp_path / "absent") == []
        pool.connection.assert_not_called()

    def test_scripts_applied_in_filename_order(self, tmp_path: Path) -> None:
        (tmp_path / "002_indexes.sql").write_text("SELECT 2;")
        (tmp_path / "001_tables.sql").write_text("SELECT 1;")
        (tmp_path / "notes.txt").write_text("ignored")
        pool = MagicMock()
        conn = pool.connection.return_value.__enter__.return_value

        applied = run_migrations(pool, tmp_path)

        assert applied == ["001_tables.sql", "002_indexes.sql"]
        assert [c.args[0] for c in conn.execute.call_args_list] == ["SELECT 1;", "SELECT 2;"]

    def test_failing_script_stops_the_run(self, tmp_path: Path) -> None:
        (tmp_path / "001_bad.sql").write_text("CREATE TABLE")
        (tmp_path / "002_next.sql").write_text("SELECT 1;")
        pool = MagicMock()
        conn = pool.connection.return_value.__enter__.return_value
        conn.execute.side_effect = psycopg.ProgrammingError("syntax error at end of input")

        with pytest.raises(RuntimeError, match="001_bad.sql"):
            run_migrations(pool, tmp_path)
        assert conn.execute.call_count == 1
