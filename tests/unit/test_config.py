"""
Unit Tests - Configuration and Identity
"""
import logging

import pytest
import structlog

from stockledger.config import Settings
from stockledger.config.logging import _service_context, configure_logging
from stockledger.config.settings import DatabaseSettings, InventorySettings
from stockledger.inventory.exceptions import PermissionDenied
from stockledger.inventory.identity import SYSTEM_ACTOR, Actor, Role, require_reconciler, require_writer


class TestSettings:
    """Tests for settings defaults and validation"""

    def test_testing_environment(self, test_settings):
        """Test explicit environment and defaults"""
        assert test_settings.app_env == "testing"
        assert not test_settings.is_production
        assert test_settings.security.write_roles == ["admin", "stockist"]
        assert test_settings.security.reconcile_roles == ["admin"]

    def test_invalid_environment(self):
        """Test unknown environments are rejected"""
        with pytest.raises(ValueError):
            Settings(app_env="moon")

    def test_inventory_defaults(self):
        """Test inventory defaults"""
        inventory = InventorySettings()

        assert inventory.default_base_unit == "pcs"
        assert inventory.default_min_stock_level == 10
        assert inventory.inbound_reference_prefix == "STOCK"
        assert inventory.outbound_reference_prefix == "REDUCE"
        assert inventory.atomic_writes is True

    def test_database_url_override(self, monkeypatch):
        """Test DATABASE_URL wins over host settings"""
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./stock.db")

        database = DatabaseSettings()

        assert database.async_url == "sqlite+aiosqlite:///./stock.db"
        assert database.is_sqlite


class TestLogging:
    """Tests for logging setup"""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root_logger = logging.getLogger()
        handlers, level = root_logger.handlers[:], root_logger.level
        yield
        root_logger.handlers = handlers
        root_logger.setLevel(level)
        structlog.reset_defaults()

    def test_overrides(self):
        """Test level and format overrides are applied"""
        effective = configure_logging(log_level="warning", log_format="text")

        assert effective == {"level": "WARNING", "format": "text"}
        assert logging.getLogger().level == logging.WARNING
        assert len(logging.getLogger().handlers) == 1

    def test_server_loggers_routed(self):
        """Test server loggers propagate to the root handler"""
        configure_logging(log_level="INFO")

        access = logging.getLogger("uvicorn.access")
        assert access.handlers == []
        assert access.propagate
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_service_context(self, test_settings):
        """Test events are stamped with service and environment"""
        add_context = _service_context(test_settings)

        event = add_context(None, "info", {"event": "Stock updated"})

        assert event["service"] == "stock-ledger"
        assert event["environment"] == "testing"


class TestIdentity:
    """Tests for role checks"""

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.STOCKIST])
    def test_writers(self, role):
        """Test admins and stockists may write"""
        require_writer(Actor("u1", role), "change stock")

    def test_cashier_denied(self, cashier):
        """Test cashiers may not write"""
        with pytest.raises(PermissionDenied) as exc_info:
            require_writer(cashier, "change stock")

        assert exc_info.value.role == "cashier"

    def test_only_admin_reconciles(self, stockist, admin):
        """Test reconcile is admin only"""
        require_reconciler(admin)
        require_reconciler(SYSTEM_ACTOR)
        with pytest.raises(PermissionDenied):
            require_reconciler(stockist)
