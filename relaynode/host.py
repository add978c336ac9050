"""Execution backends for the machine being provisioned.

Every provisioning step talks to the node exclusively through a
:class:`Host`. :class:`LocalHost` runs commands with ``subprocess`` on the
current machine; :class:`SSHHost` runs them on a remote node over Paramiko.
File transfers go through the command channel (``cat > path`` fed from
stdin) so the same code path works with and without ``sudo``.
"""

from __future__ import annotations

import logging
import os
import posixpath
import shlex
import socket
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import paramiko

from .errors import HostCommandError, HostConnectionError, ProvisionError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    exit_status: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def _as_bytes(data: str | bytes | None) -> Optional[bytes]:
    if data is None:
        return None
    if isinstance(data, bytes):
        return data
    return data.encode("utf-8")


class Host:
    """Abstract command/file interface to a provisioning target."""

    label = "host"
    # Port the provisioner itself reaches the node on; the firewall keeps it open.
    management_port: Optional[int] = None

    def __init__(self, *, sudo: bool = False):
        self.sudo = sudo

    def _wrap(self, command: str) -> str:
        if self.sudo:
            return f"sudo bash -c {shlex.quote(command)}"
        return command

    def run(self, command: str, *, input: str | bytes | None = None) -> CommandResult:
        raise NotImplementedError

    def run_checked(
        self,
        command: str,
        description: str | None = None,
        *,
        input: str | bytes | None = None,
    ) -> str:
        """Run ``command`` and return stdout, raising on a nonzero exit."""

        result = self.run(command, input=input)
        if result.exit_status != 0:
            raise HostCommandError(
                command,
                result.exit_status,
                result.stderr or result.stdout,
                description=description,
            )
        return result.stdout

    def write_file(self, path: str, data: str | bytes, mode: int = 0o644) -> None:
        """Create parent directories and overwrite ``path`` with ``data``."""

        quoted = shlex.quote(path)
        parent = shlex.quote(posixpath.dirname(path) or "/")
        command = f"mkdir -p {parent} && (umask 077 && cat > {quoted}) && chmod {mode:o} {quoted}"
        logger.debug("写入文件 %s（mode=%o）", path, mode)
        self.run_checked(command, f"写入 {path}", input=data)

    def read_file(self, path: str) -> str:
        return self.run_checked(f"cat {shlex.quote(path)}", f"读取 {path}")

    def exists(self, path: str) -> bool:
        return self.run(f"test -e {shlex.quote(path)}").ok

    def which(self, name: str) -> Optional[str]:
        result = self.run(f"command -v {shlex.quote(name)}")
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def remove(self, path: str) -> None:
        self.run_checked(f"rm -f {shlex.quote(path)}", f"删除 {path}")

    def close(self) -> None:
        """Release backend resources; the default host holds none."""

    def __enter__(self) -> "Host":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class LocalHost(Host):
    """Run commands on the current machine through ``bash -c``."""

    label = "localhost"

    def run(self, command: str, *, input: str | bytes | None = None) -> CommandResult:
        wrapped = self._wrap(command)
        logger.debug("本地执行：%s", wrapped)
        try:
            proc = subprocess.run(
                ["bash", "-c", wrapped],
                input=_as_bytes(input),
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise HostConnectionError(f"无法在本机启动 bash：{exc}") from exc
        return CommandResult(
            proc.returncode,
            proc.stdout.decode("utf-8", errors="replace"),
            proc.stderr.decode("utf-8", errors="replace"),
        )

    @staticmethod
    def is_root() -> bool:
        return hasattr(os, "geteuid") and os.geteuid() == 0


def load_private_key(path: str | os.PathLike[str]) -> paramiko.PKey:
    """Load an SSH private key, trying Ed25519 → ECDSA → RSA."""

    key_path = Path(path).expanduser()
    if key_path.is_dir():
        raise ProvisionError(f"给定的私钥路径是目录：{key_path}")
    if not key_path.exists():
        raise ProvisionError(f"私钥文件不存在：{key_path}")

    errors: list[str] = []
    for key_cls in (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey):
        try:
            return key_cls.from_private_key_file(str(key_path))
        except paramiko.PasswordRequiredException as exc:
            raise ProvisionError("私钥受口令保护，请先解锁或改用密码登录。") from exc
        except paramiko.SSHException as exc:
            errors.append(str(exc))

    joined = "; ".join(filter(None, errors)) or "未知错误"
    raise ProvisionError(f"无法解析私钥文件 {key_path}: {joined}")


class SSHHost(Host):
    """Run commands on a remote node over Paramiko."""

    def __init__(
        self,
        hostname: str,
        *,
        username: str = "root",
        port: int = 22,
        key_path: str | None = None,
        password: str | None = None,
        timeout: int = 20,
        sudo: bool = False,
        client: paramiko.SSHClient | None = None,
    ):
        super().__init__(sudo=sudo)
        self.hostname = hostname
        self.username = username
        self.port = port
        self.key_path = key_path
        self.password = password
        self.timeout = timeout
        self._client = client

    @property
    def label(self) -> str:  # type: ignore[override]
        return f"{self.username}@{self.hostname}:{self.port}"

    @property
    def management_port(self) -> int:  # type: ignore[override]
        return self.port

    def connect(self) -> paramiko.SSHClient:
        if self._client is not None:
            return self._client

        pkey = load_private_key(self.key_path) if self.key_path else None
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                self.hostname,
                port=self.port,
                username=self.username,
                password=self.password,
                pkey=pkey,
                allow_agent=False,
                look_for_keys=False,
                timeout=self.timeout,
                banner_timeout=self.timeout,
                auth_timeout=self.timeout,
            )
        except paramiko.AuthenticationException as exc:
            raise ProvisionError(
                f"SSH 认证失败（{self.label}），请检查密码/私钥是否正确。"
            ) from exc
        except (paramiko.SSHException, socket.error) as exc:
            raise ProvisionError(
                f"无法建立 SSH 连接：{exc}. 请确认节点可达且防火墙已放行 {self.port} 端口。"
            ) from exc

        logger.info("已连接 %s", self.label)
        self._client = client
        return client

    def run(self, command: str, *, input: str | bytes | None = None) -> CommandResult:
        client = self.connect()
        wrapped = self._wrap(command)
        logger.debug("远程执行（%s）：%s", self.label, wrapped)
        try:
            stdin, stdout, stderr = client.exec_command(wrapped)
            payload = _as_bytes(input)
            if payload is not None:
                stdin.write(payload)
            stdin.channel.shutdown_write()
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, socket.error, EOFError) as exc:
            raise HostConnectionError(f"SSH 会话中断（{self.label}）：{exc}") from exc
        return CommandResult(exit_status, out, err)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


__all__ = [
    "CommandResult",
    "Host",
    "LocalHost",
    "SSHHost",
    "load_private_key",
]
