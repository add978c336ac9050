"""Centralized configuration defaults for RelayNode.

This package consolidates the fixed artifact paths, package lists and
runtime release pins so they are not scattered across the step modules.
"""

from .defaults import (
    ACME_CHALLENGE_PORT,
    BASE_PACKAGES,
    CERTBOT_PACKAGES,
    DEFAULT_ALPN,
    DEFAULT_DNS_LIST,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_LOG_DIR,
    DEFAULT_PORT,
    DEFAULT_PROFILE_REMARK,
    DEFAULT_SHORT_IDS,
    LOCALHOST_NAME,
    XRAY_RELEASE_ASSET,
    XRAY_RELEASE_URL,
    XRAY_RELEASE_VERSION,
)
from .env_profiles import DEFAULT_PROFILE, NodeProfile, profile_under

__all__ = [
    "ACME_CHALLENGE_PORT",
    "BASE_PACKAGES",
    "CERTBOT_PACKAGES",
    "DEFAULT_ALPN",
    "DEFAULT_DNS_LIST",
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_LOG_DIR",
    "DEFAULT_PORT",
    "DEFAULT_PROFILE",
    "DEFAULT_PROFILE_REMARK",
    "DEFAULT_SHORT_IDS",
    "LOCALHOST_NAME",
    "NodeProfile",
    "XRAY_RELEASE_ASSET",
    "XRAY_RELEASE_URL",
    "XRAY_RELEASE_VERSION",
    "profile_under",
]
