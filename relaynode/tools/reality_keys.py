"""Reality 密钥生成。Generate the RSA key pair used by the Reality transport.

Keys are regenerated on every run. Any public key handed to clients by a
previous run stops working once this step completes, unless a rollback puts
the previous pair back.
"""

from __future__ import annotations

import logging
import shlex

from ..config.defaults import REALITY_KEY_BITS
from ..console import log_info, log_warning
from ..errors import HostCommandError, KeyGenerationError
from ..sequencer import KeyPair
from ..snapshots import restore_snapshot, restored_on_failure, take_snapshot

logger = logging.getLogger(__name__)


def flatten_public_key(pem: str) -> str:
    """Strip PEM armor and line breaks, leaving the base64 body."""

    lines = [line.strip() for line in pem.splitlines()]
    return "".join(line for line in lines if line and not line.startswith("-----"))


def generate_key_pair(host, key_dir: str, private_key_path: str, public_key_path: str) -> KeyPair:
    private_q = shlex.quote(private_key_path)
    public_q = shlex.quote(public_key_path)
    commands = [
        (f"mkdir -p {shlex.quote(key_dir)}", "创建密钥目录"),
        (f"openssl genrsa -out {private_q} {REALITY_KEY_BITS}", "生成 Reality 私钥"),
        (f"chmod 600 {private_q}", "收紧私钥权限"),
        (f"openssl rsa -in {private_q} -pubout -out {public_q}", "导出 Reality 公钥"),
    ]
    try:
        for command, description in commands:
            host.run_checked(command, description)
        public_pem = host.read_file(public_key_path)
    except HostCommandError as exc:
        raise KeyGenerationError(f"生成 Reality 密钥失败：{exc}") from exc

    public_key = flatten_public_key(public_pem)
    if not public_key:
        raise KeyGenerationError(f"公钥文件为空：{public_key_path}")
    return KeyPair(private_key_path, public_key_path, public_key)


def generate_reality_keys(ctx) -> None:
    profile = ctx.profile
    log_info("生成 Reality RSA 密钥对……")
    log_warning("⚠️ 密钥每次运行都会重新生成，旧的客户端公钥将失效。")
    take_snapshot(ctx, profile.private_key_path, 0o600)
    take_snapshot(ctx, profile.public_key_path, 0o644)
    with restored_on_failure(ctx, profile.private_key_path, profile.public_key_path):
        ctx.key_pair = generate_key_pair(
            ctx.host, profile.key_dir, profile.private_key_path, profile.public_key_path
        )
    logger.info("Reality 公钥已写入 %s", profile.public_key_path)


def restore_reality_keys(ctx) -> None:
    restore_snapshot(ctx, ctx.profile.private_key_path)
    restore_snapshot(ctx, ctx.profile.public_key_path)
    ctx.key_pair = None
