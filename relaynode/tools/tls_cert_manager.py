from __future__ import annotations

import logging
import posixpath
import shlex
from typing import Optional

from ..config.defaults import LETSENCRYPT_LIVE_DIR, LOCALHOST_NAME, SELF_SIGNED_DAYS
from ..console import log_info, log_success
from ..errors import CertificateError, HostCommandError
from ..host import Host
from ..sequencer import CertificateBundle
from ..snapshots import restore_snapshot, restored_on_failure, take_snapshot

logger = logging.getLogger(__name__)

SOURCE_LETSENCRYPT = "letsencrypt"
SOURCE_SELF_SIGNED = "self-signed"


def self_signed_command(cert_path: str, key_path: str, common_name: str = LOCALHOST_NAME) -> str:
    return (
        f"openssl req -newkey rsa:2048 -nodes -days {SELF_SIGNED_DAYS} -x509 "
        f"-subj {shlex.quote('/CN=' + common_name)} "
        f"-out {shlex.quote(cert_path)} -keyout {shlex.quote(key_path)}"
    )


def certbot_command(domain: str, email: Optional[str] = None) -> str:
    parts = [
        "certbot certonly --standalone --non-interactive --agree-tos",
        f"-d {shlex.quote(domain)}",
    ]
    if email:
        parts.append(f"-m {shlex.quote(email)}")
    else:
        parts.append("--register-unsafely-without-email")
    return " ".join(parts)


class TLSCertManager:
    """Place a certificate/key pair at the fixed paths Xray reads.

    Without a domain a self-signed ``CN=localhost`` certificate is generated
    locally. With a domain, certbot's standalone HTTP-01 challenge issues a
    Let's Encrypt certificate which is then copied into place. Issuance
    failures are fatal and are never retried.
    """

    def __init__(self, host: Host, cert_path: str, key_path: str):
        self.host = host
        self.cert_path = cert_path
        self.key_path = key_path

    def _run(self, command: str, description: str) -> None:
        try:
            self.host.run_checked(command, description)
        except HostCommandError as exc:
            logger.error("%s 失败：%s", description, exc)
            raise CertificateError(f"{description}失败：{exc}") from exc

    def _prepare_dir(self) -> None:
        for directory in sorted({posixpath.dirname(self.cert_path), posixpath.dirname(self.key_path)}):
            self._run(f"mkdir -p {shlex.quote(directory)}", f"创建目录 {directory}")

    def _restrict_key(self) -> None:
        self._run(f"chmod 600 {shlex.quote(self.key_path)}", "收紧证书私钥权限")

    def issue_self_signed(self) -> CertificateBundle:
        log_info("未设置域名：生成自签名证书（CN=localhost）……")
        self._prepare_dir()
        self._run(self_signed_command(self.cert_path, self.key_path), "生成自签名证书")
        self._restrict_key()
        log_success(f"自签名证书已生成：{self.cert_path}")
        return CertificateBundle(self.cert_path, self.key_path, SOURCE_SELF_SIGNED)

    def issue_letsencrypt(self, domain: str, email: Optional[str] = None) -> CertificateBundle:
        log_info(f"为 {domain} 申请 Let's Encrypt 证书……")

        # standalone 模式需要独占 80 端口
        stop = self.host.run("systemctl stop nginx")
        if not stop.ok:
            logger.warning("停止 nginx 失败（可能未安装）：%s", stop.stderr.strip())

        self._run(certbot_command(domain, email), "Let's Encrypt 证书申请")

        live_dir = posixpath.join(LETSENCRYPT_LIVE_DIR, domain)
        self._prepare_dir()
        self._run(
            f"cp {shlex.quote(posixpath.join(live_dir, 'fullchain.pem'))} {shlex.quote(self.cert_path)}",
            "复制证书",
        )
        self._run(
            f"cp {shlex.quote(posixpath.join(live_dir, 'privkey.pem'))} {shlex.quote(self.key_path)}",
            "复制证书私钥",
        )
        self._restrict_key()
        log_success(f"Let's Encrypt 证书已就绪：{self.cert_path}")
        return CertificateBundle(self.cert_path, self.key_path, SOURCE_LETSENCRYPT)

    def ensure_certificate(self, domain: Optional[str], email: Optional[str] = None) -> CertificateBundle:
        if domain:
            return self.issue_letsencrypt(domain, email)
        return self.issue_self_signed()


def provision_certificate(ctx) -> None:
    profile = ctx.profile
    take_snapshot(ctx, profile.cert_path, 0o644)
    take_snapshot(ctx, profile.cert_key_path, 0o600)
    manager = TLSCertManager(ctx.host, profile.cert_path, profile.cert_key_path)
    with restored_on_failure(ctx, profile.cert_path, profile.cert_key_path):
        ctx.certificate = manager.ensure_certificate(ctx.params.domain, ctx.email)


def restore_certificate(ctx) -> None:
    restore_snapshot(ctx, ctx.profile.cert_path)
    restore_snapshot(ctx, ctx.profile.cert_key_path)
    ctx.certificate = None
