"""Xray 运行时安装。Install a pinned, checksum-verified Xray release."""

from __future__ import annotations

import hashlib
import io
import logging
import re
import zipfile
from typing import Optional

import requests

from ..config.defaults import (
    DEFAULT_HTTP_TIMEOUT,
    XRAY_RELEASE_ASSET,
    XRAY_RELEASE_URL,
    XRAY_RELEASE_VERSION,
)
from ..console import log_info, log_success
from ..errors import HostCommandError, RuntimeInstallError
from ..host import Host

logger = logging.getLogger(__name__)

_DGST_RE = re.compile(r"SHA2-256\s*=\s*([0-9a-fA-F]{64})")


def release_url(version: str, asset: str = XRAY_RELEASE_ASSET) -> str:
    return XRAY_RELEASE_URL.format(version=version, asset=asset)


def parse_dgst(text: str) -> str:
    """Extract the SHA2-256 digest from an Xray ``.dgst`` release file."""

    match = _DGST_RE.search(text)
    if not match:
        raise RuntimeInstallError("校验文件中未找到 SHA2-256 摘要")
    return match.group(1).lower()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def extract_binary(archive: bytes, member: str = "xray") -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
            return bundle.read(member)
    except (zipfile.BadZipFile, KeyError) as exc:
        raise RuntimeInstallError(f"发布包中缺少 {member}：{exc}") from exc


class XrayInstaller:
    def __init__(
        self,
        host: Host,
        binary_path: str,
        *,
        version: Optional[str] = None,
        expected_sha256: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_HTTP_TIMEOUT,
    ):
        self.host = host
        self.binary_path = binary_path
        self.version = version or XRAY_RELEASE_VERSION
        self.expected_sha256 = expected_sha256.lower() if expected_sha256 else None
        self.session = session or requests.Session()
        self.timeout = timeout

    def is_installed(self) -> bool:
        return self.host.which("xray") is not None or self.host.exists(self.binary_path)

    def _get(self, url: str) -> requests.Response:
        logger.info("下载 %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RuntimeInstallError(f"下载失败：{url}：{exc}") from exc
        return response

    def fetch_verified_archive(self) -> bytes:
        url = release_url(self.version)
        archive = self._get(url).content
        expected = self.expected_sha256 or parse_dgst(self._get(f"{url}.dgst").text)
        actual = sha256_hex(archive)
        if actual != expected:
            raise RuntimeInstallError(
                f"Xray {self.version} 校验失败：期望 {expected}，实际 {actual}"
            )
        logger.info("Xray %s SHA-256 校验通过：%s", self.version, actual)
        return archive

    def ensure_installed(self) -> bool:
        """Install Xray unless present; return ``True`` when this call installed it."""

        if self.is_installed():
            log_info("检测到 Xray 已安装，跳过安装步骤")
            return False

        log_info(f"Xray 未安装，开始安装固定版本 {self.version}")
        binary = extract_binary(self.fetch_verified_archive())
        try:
            self.host.write_file(self.binary_path, binary, mode=0o755)
        except HostCommandError as exc:
            raise RuntimeInstallError(f"写入 {self.binary_path} 失败：{exc}") from exc
        log_success(f"Xray {self.version} 已安装到 {self.binary_path}")
        return True

    def uninstall(self) -> None:
        self.host.remove(self.binary_path)


def install_runtime(ctx) -> None:
    installer = XrayInstaller(
        ctx.host,
        ctx.profile.binary_path,
        version=ctx.xray_version,
        expected_sha256=ctx.xray_sha256,
    )
    ctx.installed_runtime = installer.ensure_installed()


def remove_runtime(ctx) -> None:
    if not ctx.installed_runtime:
        return
    XrayInstaller(ctx.host, ctx.profile.binary_path).uninstall()
    ctx.installed_runtime = False
