"""顺序部署引擎。Linear provisioning sequencer with optional saga rollback.

The sequencer applies an ordered list of :class:`Step` objects to a single
:class:`ProvisioningContext`. Steps never branch back: each one either
completes or raises :class:`~relaynode.errors.ProvisionError`, which aborts
the run. With ``rollback=True`` the completed steps are unwound in reverse
order through their ``undo`` callbacks, which put back what the node had
before the run. Actions queued on ``ctx.after_rollback`` (restarting the old
service) run once every undo has finished, then the error is re-raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .config.env_profiles import DEFAULT_PROFILE, NodeProfile
from .console import log_section, log_success, log_warning
from .errors import ProvisionError
from .host import Host
from .params import ProvisioningParameters

logger = logging.getLogger(__name__)


@dataclass
class KeyPair:
    private_key_path: str
    public_key_path: str
    public_key: str


@dataclass
class CertificateBundle:
    cert_path: str
    key_path: str
    source: str  # "letsencrypt" | "self-signed"


@dataclass
class FileSnapshot:
    """Content of an artifact before this run touched it; ``None`` if absent."""

    path: str
    content: Optional[str]
    mode: int


@dataclass
class ProvisioningContext:
    """Mutable state threaded through every step of one run."""

    host: Host
    params: ProvisioningParameters
    profile: NodeProfile = DEFAULT_PROFILE
    email: Optional[str] = None
    upgrade: bool = True
    xray_version: Optional[str] = None
    xray_sha256: Optional[str] = None

    client_uuid: Optional[str] = None
    key_pair: Optional[KeyPair] = None
    certificate: Optional[CertificateBundle] = None
    rendered_config: Optional[dict[str, Any]] = None
    service_unit: Optional[str] = None

    # 记录本次运行新增的状态，供回滚使用
    rollback: bool = False
    installed_packages: list[str] = field(default_factory=list)
    firewall_rules: list[str] = field(default_factory=list)
    firewall_enabled_by_run: bool = False
    installed_runtime: bool = False
    snapshots: dict[str, FileSnapshot] = field(default_factory=dict)
    service_was_active: bool = False
    service_was_enabled: bool = False
    # 回滚末尾执行（例如在旧配置恢复后重启旧服务）
    after_rollback: list[Callable[["ProvisioningContext"], None]] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)


StepAction = Callable[[ProvisioningContext], None]


@dataclass
class Step:
    """One unit of provisioning work plus its compensating action."""

    name: str
    apply: StepAction
    undo: Optional[StepAction] = None
    enabled: Callable[[ProvisioningContext], bool] = lambda ctx: True


class ProvisioningSequencer:
    def __init__(self, steps: list[Step], *, rollback: bool = False):
        self.steps = steps
        self.rollback = rollback

    def plan(self, ctx: ProvisioningContext) -> list[tuple[str, bool]]:
        """Return ``(step name, enabled)`` pairs without touching the host."""

        return [(step.name, step.enabled(ctx)) for step in self.steps]

    def run(self, ctx: ProvisioningContext) -> ProvisioningContext:
        ctx.rollback = self.rollback
        completed: list[Step] = []
        for index, step in enumerate(self.steps, start=1):
            if not step.enabled(ctx):
                logger.info("跳过步骤 %s", step.name)
                continue

            log_section(f"[{index}/{len(self.steps)}] {step.name}")
            try:
                step.apply(ctx)
            except ProvisionError as exc:
                if exc.step is None:
                    exc.step = step.name
                logger.error("步骤 %s 失败：%s", step.name, exc)
                if self.rollback:
                    self._unwind(completed, ctx)
                raise

            completed.append(step)
            ctx.completed_steps.append(step.name)
            logger.info("步骤 %s 完成", step.name)

        log_success("✅ 全部步骤执行完成")
        return ctx

    def _unwind(self, completed: list[Step], ctx: ProvisioningContext) -> None:
        log_warning("⚠️ 开始回滚已完成的步骤……")
        for step in reversed(completed):
            if step.undo is None:
                continue
            try:
                step.undo(ctx)
            except ProvisionError as exc:
                log_warning(f"⚠️ 回滚 {step.name} 失败：{exc}")
            else:
                logger.info("已回滚 %s", step.name)
            if step.name in ctx.completed_steps:
                ctx.completed_steps.remove(step.name)

        for action in ctx.after_rollback:
            try:
                action(ctx)
            except ProvisionError as exc:
                log_warning(f"⚠️ 回滚收尾失败：{exc}")
        ctx.after_rollback.clear()


__all__ = [
    "CertificateBundle",
    "FileSnapshot",
    "KeyPair",
    "ProvisioningContext",
    "ProvisioningSequencer",
    "Step",
]
