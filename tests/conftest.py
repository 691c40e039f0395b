"""Shared test fixtures."""
from __future__ import annotations

from datetime import datetime

import pytest

from fakes import FakeTerminal, attendance_8, user_28
from zkteco_sync.zk.models import DeviceEndpoint


@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch, tmp_path):
    """Set default env vars for tests."""
    defaults = {
        "ZK_MACHINES_CONFIG": str(tmp_path / "missing-machines.yml"),
        "ZK_DEVICE_IP": "10.0.0.201",
        "ZK_TIMEOUT": "5",
        "API_KEY": "test-api-key",
        "DATABASE_URL": f"sqlite:///{tmp_path / 'zkteco.db'}",
        "EXPORT_DIR": str(tmp_path / "export"),
        "SCHEDULER_ENABLED": "false",
        "ENVIRONMENT": "test",
    }
    for k, v in defaults.items():
        monkeypatch.setenv(k, v)

    # Reset singletons
    import zkteco_sync.config as cfg
    import zkteco_sync.core.cache as cache
    import zkteco_sync.zk.pool as pool

    cfg._settings = None
    pool._pool = None
    cache._cache = None
    yield
    cfg._settings = None
    pool._pool = None
    cache._cache = None


@pytest.fixture
def endpoint():
    return DeviceEndpoint(ip="10.0.0.201", port=4370, timeout=5)


@pytest.fixture
def sample_users():
    return [
        user_28(1, 1001, "Alice", privilege=14, card=555),
        user_28(2, 1002, "Bob"),
        user_28(3, 1003, "Carol", privilege=2),
    ]


@pytest.fixture
def sample_attendance():
    return [
        attendance_8(1, datetime(2024, 3, 1, 8, 0, 5), status=1),
        attendance_8(2, datetime(2024, 3, 1, 8, 15, 0), status=1),
        attendance_8(1, datetime(2024, 3, 1, 17, 2, 30), status=0),
        attendance_8(3, datetime(2024, 3, 2, 9, 0, 0), status=4),
    ]


@pytest.fixture
def terminal(sample_users, sample_attendance):
    """A zk6 terminal with three users and four punches, no password."""
    return FakeTerminal(users=sample_users, attendance=sample_attendance)


@pytest.fixture
def pool(terminal, monkeypatch):
    """Global device pool whose clients talk to the fake terminal."""
    import zkteco_sync.zk.pool as pool_module
    from zkteco_sync.zk.client import ZKClient
    from zkteco_sync.zk.pool import DevicePool

    p = DevicePool()

    def get_client(device_key):
        config = p.get_config(device_key)
        return ZKClient(config.endpoint, "zk6", name=config.name, transport=terminal, passwords=p._passwords)

    monkeypatch.setattr(p, "get_client", get_client)
    pool_module._pool = p
    return p
