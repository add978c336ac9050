"""Exceptions raised while provisioning a relay node."""

from __future__ import annotations

from typing import Optional


class ProvisionError(RuntimeError):
    """Raised when a provisioning step fails.

    ``step`` names the step that failed so the CLI can report it; the
    sequencer fills it in when a step raises without setting it.
    """

    def __init__(self, message: str, *, step: Optional[str] = None):
        super().__init__(message)
        self.step = step


class ParameterError(ProvisionError, ValueError):
    """Invalid domain, port or short id."""


class HostCommandError(ProvisionError):
    """A checked command exited with a nonzero status."""

    def __init__(self, command: str, exit_status: int, output: str, *, description: str | None = None):
        label = description or command
        tail = output.strip()[-600:]
        super().__init__(f"执行失败：{label}（退出码 {exit_status}）\n输出: {tail}")
        self.command = command
        self.exit_status = exit_status
        self.output = output


class HostConnectionError(ProvisionError):
    """The command channel to the host broke before a command completed."""


class PackageInstallError(ProvisionError):
    """apt-get could not install a declared package."""


class FirewallError(ProvisionError):
    """ufw rejected a rule change."""


class RuntimeInstallError(ProvisionError):
    """The Xray runtime could not be downloaded, verified or installed."""


class KeyGenerationError(ProvisionError):
    """openssl failed to produce the Reality key pair."""


class CertificateError(ProvisionError):
    """Neither certbot nor openssl produced a usable certificate."""


class ConfigRenderError(ProvisionError):
    """The Xray configuration could not be rendered or written."""


class ServiceError(ProvisionError):
    """systemd refused to register or start the Xray unit."""


class RenewalError(ProvisionError):
    """The certificate renewal job could not be installed."""


class ReportError(ProvisionError):
    """The client profile could not be saved locally."""


__all__ = [
    "CertificateError",
    "ConfigRenderError",
    "FirewallError",
    "HostCommandError",
    "HostConnectionError",
    "KeyGenerationError",
    "PackageInstallError",
    "ParameterError",
    "ProvisionError",
    "RenewalError",
    "ReportError",
    "RuntimeInstallError",
    "ServiceError",
]
