"""The ordered step list for provisioning one relay node."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .report import emit_report
from .sequencer import ProvisioningContext, Step
from .tools.firewall import configure_firewall, revert_firewall
from .tools.packages import install_packages, remove_installed_packages
from .tools.reality_keys import generate_reality_keys, restore_reality_keys
from .tools.renewal import restore_renewal, schedule_renewal
from .tools.service_manager import register_service, restore_service
from .tools.tls_cert_manager import provision_certificate, restore_certificate
from .tools.xray_config import render_config, restore_config
from .tools.xray_installer import install_runtime, remove_runtime


def _has_domain(ctx: ProvisioningContext) -> bool:
    return ctx.params.has_domain


def build_steps(profile_out: Optional[str | Path] = None) -> list[Step]:
    """Return the provisioning steps in execution order.

    Parameter resolution happens before the sequencer starts, so the list
    begins with package installation.
    """

    return [
        Step("安装系统软件包", install_packages, undo=remove_installed_packages),
        Step("配置防火墙", configure_firewall, undo=revert_firewall),
        Step("安装 Xray 运行时", install_runtime, undo=remove_runtime),
        Step("生成 Reality 密钥", generate_reality_keys, undo=restore_reality_keys),
        Step("准备 TLS 证书", provision_certificate, undo=restore_certificate),
        Step("生成 Xray 配置", render_config, undo=restore_config),
        Step("注册 systemd 服务", register_service, undo=restore_service),
        Step("创建证书续期任务", schedule_renewal, undo=restore_renewal, enabled=_has_domain),
        Step("输出部署报告", lambda ctx: emit_report(ctx, profile_out)),
    ]
