"""部署结果汇总。Print the summary and client profile after a successful run."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Optional

from .console import GREEN, YELLOW, log_info, logwrite
from .errors import ReportError
from .tools.tls_cert_manager import SOURCE_LETSENCRYPT
from .tools.xray_client_config import (
    client_profile_json,
    generate_client_profile,
    generate_vless_url,
    save_client_profile,
)


def fold_key(public_key: str, width: int = 32) -> str:
    return "\n".join(textwrap.wrap(public_key, width)) or public_key


def build_report(ctx) -> str:
    params = ctx.params
    cert = ctx.certificate
    profile = generate_client_profile(
        server_address=params.server_name,
        server_port=params.port,
        uuid=ctx.client_uuid,
        public_key=ctx.key_pair.public_key,
        short_ids=params.short_ids,
    )

    if cert.source == SOURCE_LETSENCRYPT:
        cert_line = f"证书：{cert.cert_path} 和 {cert.key_path}（Let's Encrypt）"
    else:
        cert_line = f"自签名证书：{cert.cert_path} 和 {cert.key_path}"

    lines = [
        "———————————————————————————",
        f"客户端 UUID：{ctx.client_uuid}",
        f"域名/端口：{params.server_name}:{params.port}",
        cert_line,
        "Reality 公钥：",
        fold_key(ctx.key_pair.public_key),
        "-----------------------------------------------------------",
        "客户端配置（VLESS + Reality）：",
        "",
        client_profile_json(profile),
        "",
        f"分享链接：{generate_vless_url(profile)}",
    ]
    return "\n".join(lines)


def connection_instructions(ctx) -> str:
    params = ctx.params
    return "\n".join(
        [
            "• 在 VLESS + Reality 客户端中填写：",
            f"  • 地址：{params.server_name}（或服务器 IP），端口 {params.port}",
            f"  • UUID：{ctx.client_uuid}",
            f"  • ShortID：{' '.join(params.short_ids)}",
            f"  • PublicKey：{ctx.key_pair.public_key}",
        ]
    )


def emit_report(ctx, profile_out: Optional[str | Path] = None) -> None:
    logwrite("\n✅ 部署完成！", color=GREEN)
    logwrite(build_report(ctx))
    logwrite("\n连接说明：", color=YELLOW)
    logwrite(connection_instructions(ctx))

    if profile_out:
        profile = generate_client_profile(
            server_address=ctx.params.server_name,
            server_port=ctx.params.port,
            uuid=ctx.client_uuid,
            public_key=ctx.key_pair.public_key,
            short_ids=ctx.params.short_ids,
        )
        try:
            save_client_profile(profile, profile_out)
        except OSError as exc:
            raise ReportError(f"无法保存客户端配置到 {profile_out}：{exc}") from exc
        log_info(f"客户端配置已保存到 {profile_out}")
