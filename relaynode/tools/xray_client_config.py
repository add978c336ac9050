"""Xray 客户端配置生成器。Client-importable VLESS + Reality profiles."""

from __future__ import annotations

import ipaddress
import json
import logging
from pathlib import Path
from typing import Any, Sequence
from urllib.parse import quote, urlencode

from ..config.defaults import DEFAULT_ALPN, DEFAULT_PROFILE_REMARK

logger = logging.getLogger(__name__)


def _warn_if_ip(value: str) -> None:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return
    logger.warning("Reality servername 建议使用域名，但收到 IP：%s", value)


def generate_client_profile(
    server_address: str,
    server_port: int,
    uuid: str,
    public_key: str,
    short_ids: Sequence[str],
    remark: str = DEFAULT_PROFILE_REMARK,
) -> dict[str, Any]:
    """生成客户端导入用的 VLESS + Reality 配置。"""

    _warn_if_ip(server_address)

    return {
        "v": "2",
        "ps": remark,
        "add": server_address,
        "port": server_port,
        "id": uuid,
        "aid": "0",
        "net": "tcp",
        "type": "none",
        "host": "",
        "path": "/",
        "tls": "tls",
        "skip-cert-verify": False,
        "alpn": list(DEFAULT_ALPN),
        "security": "reality",
        "reauth": "none",
        "shortid": [str(short_id) for short_id in short_ids],
        "publickey": public_key,
        "servername": server_address,
        "flow": "",
        "udp": False,
    }


def generate_vless_url(profile: dict[str, Any]) -> str:
    """生成 VLESS 分享链接。Build a ``vless://`` share link from a profile."""

    query = {
        "encryption": "none",
        "security": profile["security"],
        "type": profile["net"],
        "sni": profile["servername"],
        "pbk": profile["publickey"],
        "sid": profile["shortid"][0] if profile["shortid"] else "",
        "alpn": ",".join(profile["alpn"]),
    }
    remark = quote(str(profile["ps"]), safe="")
    return (
        f"vless://{profile['id']}@{profile['add']}:{profile['port']}"
        f"?{urlencode(query, quote_via=quote)}#{remark}"
    )


def client_profile_json(profile: dict[str, Any], indent: int = 2) -> str:
    return json.dumps(profile, indent=indent, ensure_ascii=False)


def save_client_profile(profile: dict[str, Any], filepath: str | Path) -> None:
    """保存客户端配置到本地文件。"""

    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(profile, f, indent=2, ensure_ascii=False)
