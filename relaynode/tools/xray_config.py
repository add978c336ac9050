"""Xray 配置生成器。Xray VLESS + Reality server configuration generator."""

from __future__ import annotations

import json
import logging
import shlex
import uuid
from typing import Any, Sequence

from ..config.defaults import (
    DEFAULT_ALPN,
    DEFAULT_DNS_LIST,
    LOCALHOST_NAME,
    REALITY_FALLBACK_DEST,
)
from ..console import log_info
from ..errors import ConfigRenderError, HostCommandError
from ..snapshots import restore_snapshot, take_snapshot

logger = logging.getLogger(__name__)


def generate_xray_uuid() -> str:
    """生成客户端 UUID。Generate a client UUID."""

    return str(uuid.uuid4())


def generate_xray_server_config(
    listen_port: int,
    domain: str | None,
    public_key: str,
    short_ids: Sequence[str],
    tls_cert_path: str,
    tls_key_path: str,
    client_uuid: str,
    log_dir: str = "/var/log/xray",
    dns_servers: Sequence[str] | None = None,
) -> dict[str, Any]:
    """生成 Xray 服务器端配置（VLESS + TLS/Reality）。

    ``shortId`` is always a JSON array of strings, one entry per short id.
    """

    if not short_ids:
        raise ConfigRenderError("至少需要一个 Reality shortId")

    config = {
        "log": {
            "access": f"{log_dir}/access.log",
            "error": f"{log_dir}/error.log",
            "loglevel": "warning",
        },
        "inbounds": [
            {
                "port": listen_port,
                "protocol": "vless",
                "settings": {
                    "clients": [
                        {
                            "id": client_uuid,
                            "alterId": 0,
                            "email": f"client@{domain or LOCALHOST_NAME}",
                        }
                    ],
                    "decryption": "none",
                },
                "streamSettings": {
                    "network": "tcp",
                    "security": "tls",
                    "tlsSettings": {
                        "alpn": list(DEFAULT_ALPN),
                        "certificates": [
                            {
                                "certificateFile": tls_cert_path,
                                "keyFile": tls_key_path,
                            }
                        ],
                    },
                    "realitySettings": {
                        "publicKey": public_key,
                        "shortId": [str(short_id) for short_id in short_ids],
                        "fallbacks": [
                            {"dest": REALITY_FALLBACK_DEST, "xver": 0},
                        ],
                    },
                },
            }
        ],
        "outbounds": [
            {
                "protocol": "freedom",
                "settings": {},
            }
        ],
        "dns": {"servers": list(dns_servers or DEFAULT_DNS_LIST)},
        "routing": {"domainStrategy": "IPIfNonMatch", "rules": []},
    }

    return config


def generate_xray_config_json(config: dict[str, Any], indent: int = 2) -> str:
    """将 Xray 配置转换为 JSON 字符串，并回读校验。"""

    text = json.dumps(config, indent=indent, ensure_ascii=False)
    try:
        json.loads(text)
    except ValueError as exc:  # pragma: no cover - json.dumps output always parses
        raise ConfigRenderError(f"生成的配置不是合法 JSON：{exc}") from exc
    return text + "\n"


def render_config(ctx) -> None:
    if ctx.key_pair is None or ctx.certificate is None:
        raise ConfigRenderError("缺少 Reality 密钥或 TLS 证书，无法生成配置")

    if ctx.client_uuid is None:
        ctx.client_uuid = generate_xray_uuid()

    config = generate_xray_server_config(
        listen_port=ctx.params.port,
        domain=ctx.params.domain,
        public_key=ctx.key_pair.public_key,
        short_ids=ctx.params.short_ids,
        tls_cert_path=ctx.certificate.cert_path,
        tls_key_path=ctx.certificate.key_path,
        client_uuid=ctx.client_uuid,
        log_dir=ctx.profile.log_dir,
    )

    config_path = ctx.profile.config_path
    take_snapshot(ctx, config_path, 0o600)
    log_info(f"写入 Xray 配置到 {config_path}")
    try:
        ctx.host.run_checked(f"mkdir -p {shlex.quote(ctx.profile.log_dir)}", "创建 Xray 日志目录")
        ctx.host.write_file(config_path, generate_xray_config_json(config), mode=0o600)
    except HostCommandError as exc:
        raise ConfigRenderError(f"写入 Xray 配置失败：{exc}") from exc
    ctx.rendered_config = config


def restore_config(ctx) -> None:
    restore_snapshot(ctx, ctx.profile.config_path)
    ctx.rendered_config = None
