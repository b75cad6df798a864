"""
Tests for environment-specific settings.
"""
from decimal import Decimal

from orderdesk.config.database import server_connect_args
from orderdesk.config.settings import (
    DevelopmentSettings,
    ProductionSettings,
    Settings,
    TestingSettings,
    get_settings,
    get_settings_by_env,
)
from orderdesk.models.tenant import Tenant


class TestSettingsByEnv:
    def test_variants(self):
        assert isinstance(get_settings_by_env("development"), DevelopmentSettings)
        assert isinstance(get_settings_by_env("production"), ProductionSettings)
        assert isinstance(get_settings_by_env("testing"), TestingSettings)

    def test_unknown_env_uses_base_settings(self):
        assert type(get_settings_by_env("default")) is Settings

    def test_testing_defaults(self):
        settings = get_settings_by_env("testing")
        assert settings.DATABASE_URL == "sqlite://"
        assert settings.NOTIFICATIONS_ENABLED is False

    def test_ordering_defaults(self):
        settings = Settings()
        assert settings.PRICE_TOLERANCE == Decimal("0.01")
        assert settings.BATCH_MAX_ORDERS == 100
        assert settings.DEFAULT_ORDER_NUMBER_PREFIX == "ORD-"


class TestServerConnectArgs:
    def test_lock_timeout_bounds_row_lock_waits(self):
        timeout = get_settings().DATABASE_LOCK_TIMEOUT
        args = server_connect_args()
        assert args["connect_timeout"] == timeout
        assert args["options"] == f"-c lock_timeout={timeout * 1000}"


class TestTenantDefaults:
    def test_new_tenant_takes_configured_defaults(self, db):
        tenant = Tenant(name="Fresh Tenant")
        db.add(tenant)
        db.flush()

        settings = get_settings()
        assert tenant.order_number_prefix == settings.DEFAULT_ORDER_NUMBER_PREFIX
        assert tenant.timezone == settings.DEFAULT_TIMEZONE
        assert tenant.max_orders_per_month == settings.DEFAULT_MAX_ORDERS_PER_MONTH
