"""Node path profiles.

A profile bundles every fixed artifact path the provisioner touches. The
default profile mirrors the real host layout; tests build profiles rooted
under a temporary directory without changing call sites.
"""

from __future__ import annotations

from dataclasses import dataclass

from .defaults import (
    RENEWAL_CRON_PATH,
    REALITY_KEY_DIR,
    REALITY_PRIVATE_KEY_PATH,
    REALITY_PUBLIC_KEY_PATH,
    TLS_CERT_PATH,
    TLS_KEY_PATH,
    XRAY_BINARY_PATH,
    XRAY_CONFIG_DIR,
    XRAY_CONFIG_PATH,
    XRAY_LOG_DIR,
    XRAY_SERVICE_NAME,
    XRAY_SERVICE_UNIT_PATH,
)


@dataclass(frozen=True)
class NodeProfile:
    """Fixed filesystem layout of a provisioned relay node."""

    name: str
    binary_path: str
    config_dir: str
    config_path: str
    log_dir: str
    key_dir: str
    private_key_path: str
    public_key_path: str
    cert_path: str
    cert_key_path: str
    service_name: str
    service_unit_path: str
    renewal_cron_path: str


DEFAULT_PROFILE = NodeProfile(
    name="default",
    binary_path=XRAY_BINARY_PATH,
    config_dir=XRAY_CONFIG_DIR,
    config_path=XRAY_CONFIG_PATH,
    log_dir=XRAY_LOG_DIR,
    key_dir=REALITY_KEY_DIR,
    private_key_path=REALITY_PRIVATE_KEY_PATH,
    public_key_path=REALITY_PUBLIC_KEY_PATH,
    cert_path=TLS_CERT_PATH,
    cert_key_path=TLS_KEY_PATH,
    service_name=XRAY_SERVICE_NAME,
    service_unit_path=XRAY_SERVICE_UNIT_PATH,
    renewal_cron_path=RENEWAL_CRON_PATH,
)


def profile_under(root: str, name: str = "rooted") -> NodeProfile:
    """Return a copy of :data:`DEFAULT_PROFILE` with every path below ``root``."""

    root = root.rstrip("/")

    def _rebase(path: str) -> str:
        return f"{root}{path}"

    return NodeProfile(
        name=name,
        binary_path=_rebase(DEFAULT_PROFILE.binary_path),
        config_dir=_rebase(DEFAULT_PROFILE.config_dir),
        config_path=_rebase(DEFAULT_PROFILE.config_path),
        log_dir=_rebase(DEFAULT_PROFILE.log_dir),
        key_dir=_rebase(DEFAULT_PROFILE.key_dir),
        private_key_path=_rebase(DEFAULT_PROFILE.private_key_path),
        public_key_path=_rebase(DEFAULT_PROFILE.public_key_path),
        cert_path=_rebase(DEFAULT_PROFILE.cert_path),
        cert_key_path=_rebase(DEFAULT_PROFILE.cert_key_path),
        service_name=DEFAULT_PROFILE.service_name,
        service_unit_path=_rebase(DEFAULT_PROFILE.service_unit_path),
        renewal_cron_path=_rebase(DEFAULT_PROFILE.renewal_cron_path),
    )
