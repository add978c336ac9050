"""pytest 配置和共享 fixtures。pytest configuration and shared fixtures."""

from __future__ import annotations

import shlex
import sys
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from relaynode.config.env_profiles import DEFAULT_PROFILE
from relaynode.host import CommandResult, Host
from relaynode.params import ProvisioningParameters
from relaynode.sequencer import ProvisioningContext

FAKE_PUBLIC_PEM = (
    "-----BEGIN PUBLIC KEY-----\n"
    "MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEAu1SU1LfVLPHCozMxH2Mo\n"
    "4lgOEePzNm0tRgeLezV6ffAt0gunVTLw7onLRnrq0/IzW7yWR7QkrmBL7jTKEn5u\n"
    "-----END PUBLIC KEY-----\n"
)


class FakeHost(Host):
    """In-memory stand-in for a provisioning target.

    Records every command, keeps a virtual filesystem and emulates the
    handful of tools the steps rely on. ``fail_on`` maps a command substring
    to ``(exit_status, stderr)``.
    """

    label = "fake-host"

    def __init__(self, *, installed: set[str] | None = None, binaries: set[str] | None = None):
        super().__init__()
        self.files: dict[str, bytes] = {}
        self.commands: list[str] = []
        self.installed = set(installed or ())
        self.binaries = set(binaries or ())
        self.fail_on: dict[str, tuple[int, str]] = {}
        self.key_counter = 0
        self.closed = False
        self.ufw_status = "Status: inactive\n"

    # -- helpers -------------------------------------------------------
    def text(self, path: str) -> str:
        return self.files[path].decode("utf-8")

    def ran(self, fragment: str) -> bool:
        return any(fragment in command for command in self.commands)

    def _failure(self, command: str) -> CommandResult | None:
        for fragment, (status, stderr) in self.fail_on.items():
            if fragment in command:
                return CommandResult(status, "", stderr)
        return None

    # -- Host interface ------------------------------------------------
    def run(self, command: str, *, input=None) -> CommandResult:
        self.commands.append(command)
        failure = self._failure(command)
        if failure is not None:
            return failure

        argv = shlex.split(command)
        while argv and "=" in argv[0]:
            argv.pop(0)
        if not argv:
            return CommandResult(0, "", "")
        tool = argv[0]

        if tool == "dpkg-query":
            package = [arg for arg in argv[1:] if not arg.startswith("-") and ">" not in arg][0]
            if package in self.installed:
                return CommandResult(0, "install ok installed", "")
            return CommandResult(1, "", f"no packages found matching {package}")
        if tool == "apt-get" and "install" in argv:
            self.installed.add(argv[-1])
        elif tool == "apt-get" and "remove" in argv:
            for package in argv[argv.index("-y") + 1:]:
                self.installed.discard(package)
        elif tool == "openssl":
            self._openssl(argv)
        elif tool == "certbot" and "certonly" in argv:
            domain = argv[argv.index("-d") + 1]
            live = f"/etc/letsencrypt/live/{domain}"
            self.files[f"{live}/fullchain.pem"] = b"FULLCHAIN"
            self.files[f"{live}/privkey.pem"] = b"PRIVKEY"
        elif tool == "cp":
            source, target = argv[1], argv[2]
            if source not in self.files:
                return CommandResult(1, "", f"cp: cannot stat '{source}'")
            self.files[target] = self.files[source]
        elif tool == "ufw" and argv[1:] == ["status"]:
            return CommandResult(0, self.ufw_status, "")
        elif tool == "systemctl" and "is-enabled" in argv:
            unit = "/" + argv[-1]
            if any(path.endswith(unit) for path in self.files):
                return CommandResult(0, "enabled\n", "")
            return CommandResult(1, "disabled\n", "")
        elif tool == "systemctl" and "is-active" in argv:
            return CommandResult(0, "active\n", "")
        elif tool == "systemctl" and "status" in argv:
            return CommandResult(0, "● xray.service - Xray Service\n   Active: active (running)\n", "")
        return CommandResult(0, "", "")

    def _openssl(self, argv: list[str]) -> None:
        if argv[1] == "genrsa":
            self.key_counter += 1
            self.files[argv[argv.index("-out") + 1]] = f"PRIVATE-{self.key_counter}".encode()
        elif argv[1] == "rsa":
            body = FAKE_PUBLIC_PEM.replace("u1SU", f"u{self.key_counter:03d}")
            self.files[argv[argv.index("-out") + 1]] = body.encode()
        elif argv[1] == "req":
            self.files[argv[argv.index("-out") + 1]] = b"SELF-SIGNED-CERT"
            self.files[argv[argv.index("-keyout") + 1]] = b"SELF-SIGNED-KEY"

    def write_file(self, path: str, data, mode: int = 0o644) -> None:
        command = f"write {path} mode={mode:o}"
        self.commands.append(command)
        failure = self._failure(command)
        if failure is not None:
            from relaynode.errors import HostCommandError

            raise HostCommandError(command, failure.exit_status, failure.stderr)
        self.files[path] = data if isinstance(data, bytes) else data.encode("utf-8")

    def read_file(self, path: str) -> str:
        self.commands.append(f"cat {path}")
        return self.text(path)

    def exists(self, path: str) -> bool:
        return path in self.files

    def which(self, name: str):
        return f"/usr/bin/{name}" if name in self.binaries else None

    def remove(self, path: str) -> None:
        self.commands.append(f"rm -f {path}")
        self.files.pop(path, None)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录 fixture。Temporary directory fixture."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_host() -> FakeHost:
    """模拟主机 fixture。Fake host with the runtime already installed."""
    return FakeHost(binaries={"xray"})


@pytest.fixture
def localhost_params() -> ProvisioningParameters:
    """无域名参数。Parameters for localhost (self-signed) mode."""
    return ProvisioningParameters(domain=None, port=443, short_ids=("1234", "abcd"))


@pytest.fixture
def domain_params() -> ProvisioningParameters:
    """带域名参数。Parameters for Let's Encrypt mode."""
    return ProvisioningParameters(domain="vpn.example.com", port=8443, short_ids=("1234", "abcd"))


@pytest.fixture
def make_ctx(fake_host: FakeHost) -> Callable[..., ProvisioningContext]:
    """上下文工厂。Build a provisioning context bound to ``fake_host``."""

    def _make(params: ProvisioningParameters, **kwargs) -> ProvisioningContext:
        kwargs.setdefault("host", fake_host)
        kwargs.setdefault("profile", DEFAULT_PROFILE)
        return ProvisioningContext(params=params, **kwargs)

    return _make
