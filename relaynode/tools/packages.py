"""系统软件包安装。Ensure the declared apt packages are present."""

from __future__ import annotations

import logging
import shlex
from typing import Iterable

from ..config.defaults import BASE_PACKAGES, CERTBOT_PACKAGES
from ..console import log_info
from ..errors import HostCommandError, PackageInstallError
from ..host import Host

logger = logging.getLogger(__name__)

APT_ENV = "DEBIAN_FRONTEND=noninteractive"


def required_packages(with_certbot: bool) -> list[str]:
    packages = list(BASE_PACKAGES)
    if with_certbot:
        packages.extend(CERTBOT_PACKAGES)
    return packages


def is_installed(host: Host, package: str) -> bool:
    result = host.run(f"dpkg-query -W -f='${{Status}}' {shlex.quote(package)} 2>/dev/null")
    return result.ok and "install ok installed" in result.stdout


class PackageInstaller:
    """Idempotent apt-get wrapper."""

    def __init__(self, host: Host):
        self.host = host

    def refresh(self, upgrade: bool = True) -> None:
        log_info("更新软件包索引……")
        try:
            self.host.run_checked(f"{APT_ENV} apt-get update -y", "apt-get update")
            if upgrade:
                self.host.run_checked(f"{APT_ENV} apt-get upgrade -y", "apt-get upgrade")
        except HostCommandError as exc:
            raise PackageInstallError(f"更新系统软件包失败：{exc}") from exc

    def ensure(self, packages: Iterable[str]) -> list[str]:
        """Install every missing package; return the ones newly installed."""

        installed: list[str] = []
        for package in packages:
            if is_installed(self.host, package):
                log_info(f"软件包 {package} 已安装。")
                continue

            log_info(f"安装软件包：{package}")
            result = self.host.run(f"{APT_ENV} apt-get install -y {shlex.quote(package)}")
            if not result.ok:
                logger.error("安装 %s 失败：%s", package, result.stderr.strip())
                raise PackageInstallError(f"无法安装 {package}")
            installed.append(package)
        return installed

    def remove(self, packages: Iterable[str]) -> None:
        names = " ".join(shlex.quote(package) for package in packages)
        if not names:
            return
        log_info(f"移除本次安装的软件包：{names}")
        try:
            self.host.run_checked(f"{APT_ENV} apt-get remove -y {names}", "apt-get remove")
        except HostCommandError as exc:
            raise PackageInstallError(str(exc)) from exc


def install_packages(ctx) -> None:
    installer = PackageInstaller(ctx.host)
    installer.refresh(upgrade=ctx.upgrade)
    ctx.installed_packages.extend(installer.ensure(required_packages(ctx.params.has_domain)))


def remove_installed_packages(ctx) -> None:
    PackageInstaller(ctx.host).remove(ctx.installed_packages)
    ctx.installed_packages.clear()
