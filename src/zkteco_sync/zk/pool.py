"""Device registry - loads terminal configs from machines.yml."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from zkteco_sync.config import get_settings
from zkteco_sync.zk.client import ZKClient
from zkteco_sync.zk.models import DeviceConfig, DeviceEndpoint, TransportKind

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_KEY = "default"


class DevicePool:
    """Registry of configured terminals.

    :meth:`get_client` hands out one :class:`ZKClient` per device key, so the
    client lock serializes sessions to each terminal and a detected profile is
    reused by later connects.
    """

    def __init__(self, config_path: Optional[str] = None):
        self._devices: Dict[str, DeviceConfig] = {}
        self._passwords: List[int] = []
        self._clients: Dict[str, ZKClient] = {}
        self._lock = threading.Lock()
        path = config_path or get_settings().ZK_MACHINES_CONFIG
        self._load_config(path)
        if not self._devices:
            self._add_default()

    def _load_config(self, config_path: str) -> None:
        """Load device configurations from YAML file."""
        p = Path(config_path)
        if not p.is_file():
            logger.info("Machines config not found: %s, using default device settings", config_path)
            return

        with open(p) as f:
            data = yaml.safe_load(f) or {}

        settings = get_settings()
        devices = data.get("devices", {}) or {}
        for key, cfg in devices.items():
            if not cfg.get("enabled", True):
                logger.info("Skipping disabled device %s", key)
                continue
            endpoint = DeviceEndpoint(
                ip=cfg["ip"],
                port=cfg.get("port", 4370),
                password=cfg.get("password", 0),
                timeout=cfg.get("timeout", settings.ZK_TIMEOUT),
                transport=TransportKind(cfg.get("transport", settings.ZK_TRANSPORT)),
            )
            self._devices[key] = DeviceConfig(
                key=key,
                name=cfg.get("name", cfg.get("description", key)),
                endpoint=endpoint,
                profile=cfg.get("profile", settings.ZK_PROFILE),
            )
        logger.info("Loaded %d devices from %s", len(self._devices), config_path)

    def _add_default(self) -> None:
        settings = get_settings()
        endpoint = DeviceEndpoint(
            ip=settings.ZK_DEVICE_IP,
            port=settings.ZK_PORT,
            password=settings.ZK_PASSWORD,
            timeout=settings.ZK_TIMEOUT,
            transport=TransportKind(settings.ZK_TRANSPORT),
        )
        self._devices[DEFAULT_DEVICE_KEY] = DeviceConfig(
            key=DEFAULT_DEVICE_KEY,
            name=DEFAULT_DEVICE_KEY,
            endpoint=endpoint,
            profile=settings.ZK_PROFILE,
        )

    def use_passwords(self, passwords: List[int]) -> None:
        """Candidate passwords tried in order instead of the configured one."""
        self._passwords = list(passwords)
        with self._lock:
            self._clients.clear()

    def get_client(self, device_key: str) -> ZKClient:
        """Get or create the client for the given device key."""
        config = self.get_config(device_key)
        with self._lock:
            if device_key not in self._clients:
                self._clients[device_key] = ZKClient(
                    config.endpoint, config.profile, name=config.name, passwords=self._passwords
                )
            return self._clients[device_key]

    def get_config(self, device_key: str) -> DeviceConfig:
        """Get device config by key."""
        if device_key not in self._devices:
            raise KeyError(f"Unknown device: {device_key}. Available: {list(self._devices.keys())}")
        return self._devices[device_key]

    def device_keys(self) -> List[str]:
        """Return all device keys."""
        return list(self._devices.keys())


# Lazy-loaded singleton
_pool: Optional[DevicePool] = None


def get_pool() -> DevicePool:
    """Get the global device pool (lazy loaded)."""
    global _pool
    if _pool is None:
        _pool = DevicePool()
    return _pool
