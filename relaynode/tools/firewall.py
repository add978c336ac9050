"""UFW 防火墙配置。Open the relay port (and the ACME port when needed)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from ..config.defaults import ACME_CHALLENGE_PORT
from ..console import log_info, log_warning
from ..errors import FirewallError
from ..host import Host

logger = logging.getLogger(__name__)


def _rule(port: int) -> str:
    return f"{port}/tcp"


@dataclass
class FirewallStatus:
    active: bool = False
    allowed: set[str] = field(default_factory=set)


def parse_ufw_status(text: str) -> FirewallStatus:
    """Parse plain ``ufw status`` output; IPv6 duplicates are ignored."""

    status = FirewallStatus()
    for line in text.splitlines():
        line = line.strip()
        if line.lower().startswith("status:"):
            status.active = line.split(":", 1)[1].strip().lower() == "active"
            continue
        parts = line.split()
        if len(parts) >= 2 and parts[1] == "ALLOW":
            status.allowed.add(parts[0])
    return status


class FirewallConfigurator:
    def __init__(self, host: Host):
        self.host = host

    def status(self) -> FirewallStatus:
        result = self.host.run("ufw status")
        if not result.ok:
            logger.warning("无法读取 UFW 状态：%s", result.stderr.strip())
            return FirewallStatus()
        return parse_ufw_status(result.stdout)

    def delete_rule(self, rule: str) -> None:
        """Delete an allow rule; a missing rule is not an error."""

        result = self.host.run(f"ufw --force delete allow {rule}")
        if not result.ok:
            logger.warning("删除防火墙规则 %s 失败（可能不存在）：%s", rule, result.stderr.strip())

    def allow(self, rule: str) -> None:
        result = self.host.run(f"ufw allow {rule}")
        if not result.ok:
            raise FirewallError(f"无法放行 {rule}：{(result.stderr or result.stdout).strip()}")

    def enable(self) -> None:
        result = self.host.run("ufw --force enable")
        if not result.ok:
            raise FirewallError(f"无法启用 UFW：{(result.stderr or result.stdout).strip()}")

    def disable(self) -> None:
        result = self.host.run("ufw --force disable")
        if not result.ok:
            logger.warning("停用 UFW 失败：%s", result.stderr.strip())

    def configure(self, port: int, *, open_acme_port: bool, keep_open: Iterable[int] = ()) -> list[str]:
        """Apply the rules for ``port`` and return every rule that was allowed.

        ``keep_open`` ports (the SSH session provisioning runs over) are
        allowed before UFW is enabled so the node stays reachable.
        """

        primary = _rule(port)
        log_info(f"配置 UFW：放行 {primary}")
        self.delete_rule(primary)
        self.allow(primary)
        added = [primary]

        if open_acme_port:
            acme = _rule(ACME_CHALLENGE_PORT)
            log_info(f"配置 UFW：放行 {acme}（certbot 验证需要）")
            self.allow(acme)
            added.append(acme)

        for extra in keep_open:
            rule = _rule(extra)
            if rule in added:
                continue
            log_info(f"配置 UFW：保留管理端口 {rule}")
            self.allow(rule)
            added.append(rule)

        self.enable()
        return added


def configure_firewall(ctx) -> None:
    firewall = FirewallConfigurator(ctx.host)
    before = firewall.status() if ctx.rollback else None
    management = [ctx.host.management_port] if ctx.host.management_port else []

    rules = firewall.configure(
        ctx.params.port, open_acme_port=ctx.params.has_domain, keep_open=management
    )
    if before is not None:
        rules = [rule for rule in rules if rule not in before.allowed]
        ctx.firewall_enabled_by_run = not before.active
    ctx.firewall_rules.extend(rules)


def revert_firewall(ctx) -> None:
    firewall = FirewallConfigurator(ctx.host)
    for rule in reversed(ctx.firewall_rules):
        log_warning(f"撤销防火墙规则 {rule}")
        firewall.delete_rule(rule)
    ctx.firewall_rules.clear()
    if ctx.firewall_enabled_by_run:
        log_warning("UFW 原本未启用，恢复为停用状态")
        firewall.disable()
        ctx.firewall_enabled_by_run = False
