from __future__ import annotations

import logging
import shlex
import textwrap

from ..config.defaults import XRAY_LIMIT_NOFILE
from ..console import log_info, log_success, log_warning
from ..errors import HostCommandError, ProvisionError, ServiceError
from ..host import Host
from ..snapshots import restore_snapshot, take_snapshot

logger = logging.getLogger(__name__)


def render_service_unit(binary_path: str, config_path: str) -> str:
    """Return the systemd unit that supervises ``xray run``."""

    return textwrap.dedent(
        f"""\
        [Unit]
        Description=Xray Service
        After=network.target

        [Service]
        Type=simple
        User=root
        ExecStart={binary_path} run -config {config_path}
        Restart=always
        LimitNOFILE={XRAY_LIMIT_NOFILE}

        [Install]
        WantedBy=multi-user.target
        """
    )


class XrayServiceManager:
    """Register, (re)start and health-check the Xray systemd unit.

    Registration always ends with a restart: a changed configuration and a
    first install are handled the same way.
    """

    def __init__(self, host: Host, service_name: str, unit_path: str):
        self.host = host
        self.service_name = service_name
        self.unit_path = unit_path

    def _systemctl(self, args: str, description: str) -> str:
        try:
            return self.host.run_checked(f"systemctl {args}", description)
        except HostCommandError as exc:
            logger.error("%s 失败：%s", description, exc)
            raise ServiceError(f"{description}失败：{exc}") from exc

    def install_unit(self, unit_text: str) -> None:
        log_info(f"写入 systemd 单元 {self.unit_path}")
        try:
            self.host.write_file(self.unit_path, unit_text, mode=0o644)
        except HostCommandError as exc:
            raise ServiceError(f"写入 systemd 单元失败：{exc}") from exc

    def restart(self) -> None:
        name = shlex.quote(self.service_name)
        self._systemctl("daemon-reload", "systemctl daemon-reload")
        self._systemctl(f"enable {name}", f"启用 {self.service_name}")
        log_info(f"重启 {self.service_name}")
        self._systemctl(f"restart {name}", f"重启 {self.service_name}")

    def check_health(self) -> bool:
        name = shlex.quote(self.service_name)
        result = self.host.run(f"systemctl is-active {name}")
        if not result.ok or result.stdout.strip() != "active":
            logger.error("%s 未处于 active 状态：%s", self.service_name, result.stdout.strip())
            return False
        status = self.host.run(f"systemctl status {name} --no-pager | head -n 5")
        for line in status.stdout.splitlines():
            logger.info("%s", line)
        return True

    def state(self) -> tuple[bool, bool]:
        """Return ``(active, enabled)`` as systemd reports them now."""

        name = shlex.quote(self.service_name)
        active = self.host.run(f"systemctl is-active {name}").stdout.strip() == "active"
        enabled = self.host.run(f"systemctl is-enabled {name}").stdout.strip() == "enabled"
        return active, enabled

    def stop_and_disable(self) -> None:
        name = shlex.quote(self.service_name)
        self.host.run(f"systemctl disable --now {name}")
        self.host.remove(self.unit_path)
        self.host.run("systemctl daemon-reload")

    def reinstate(self, *, enabled: bool, active: bool) -> None:
        """Re-read a restored unit and bring the service back to its old state.

        A previously running service is not restarted here: the old config
        and certificate are restored by later undo steps, after which
        :func:`restore_service` has queued the restart.
        """

        name = shlex.quote(self.service_name)
        self._systemctl("daemon-reload", "systemctl daemon-reload")
        if not enabled:
            self.host.run(f"systemctl disable {name}")
        if not active:
            self.host.run(f"systemctl stop {name}")


def register_service(ctx) -> None:
    profile = ctx.profile
    manager = XrayServiceManager(ctx.host, profile.service_name, profile.service_unit_path)
    if ctx.rollback:
        take_snapshot(ctx, profile.service_unit_path, 0o644)
        ctx.service_was_active, ctx.service_was_enabled = manager.state()

    unit = render_service_unit(profile.binary_path, profile.config_path)
    try:
        manager.install_unit(unit)
        manager.restart()
        if not manager.check_health():
            raise ServiceError(f"{profile.service_name} 启动后未处于 active 状态")
    except ServiceError:
        # 失败的步骤不会被顺序引擎补偿，这里自行恢复旧单元
        if ctx.rollback:
            try:
                restore_service(ctx)
            except ProvisionError as exc:
                log_warning(f"⚠️ 恢复 {profile.service_name} 失败：{exc}")
        raise
    ctx.service_unit = unit
    log_success(f"{profile.service_name} 已启动")


def _restart_previous(ctx) -> None:
    profile = ctx.profile
    log_warning(f"使用恢复后的配置重启 {profile.service_name}")
    manager = XrayServiceManager(ctx.host, profile.service_name, profile.service_unit_path)
    manager._systemctl(f"restart {shlex.quote(profile.service_name)}", f"重启 {profile.service_name}")


def restore_service(ctx) -> None:
    profile = ctx.profile
    manager = XrayServiceManager(ctx.host, profile.service_name, profile.service_unit_path)
    snapshot = ctx.snapshots.get(profile.service_unit_path)
    if snapshot is None or snapshot.content is None:
        ctx.snapshots.pop(profile.service_unit_path, None)
        manager.stop_and_disable()
    else:
        restore_snapshot(ctx, profile.service_unit_path)
        manager.reinstate(enabled=ctx.service_was_enabled, active=ctx.service_was_active)
        if ctx.service_was_active:
            ctx.after_rollback.append(_restart_previous)
    ctx.service_unit = None
