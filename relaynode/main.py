"""命令行入口：一键部署 Xray VLESS + Reality 中继节点。

用法：``relaynode [domain] [port]``。不带域名时生成自签名证书（localhost
模式）；带域名时通过 Let's Encrypt standalone 模式申请证书并创建续期任务。
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .config.defaults import DEFAULT_LOG_DIR
from .console import log_error, log_info, log_warning
from .errors import ParameterError, ProvisionError
from .host import Host, LocalHost, SSHHost
from .logging_utils import setup_logging
from .params import resolve_parameters
from .provision import build_steps
from .sequencer import ProvisioningContext, ProvisioningSequencer

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="relaynode",
        description="部署单个 Xray VLESS + Reality 中继节点（软件包、防火墙、证书、配置、systemd 服务）。",
    )
    parser.add_argument("domain", nargs="?", default="", help="节点域名；留空则使用自签名证书 (localhost)")
    parser.add_argument("port", nargs="?", default=None, help="监听端口 (默认: 443)")
    parser.add_argument(
        "--short-id",
        dest="short_ids",
        action="append",
        default=None,
        help="Reality shortId，可重复指定 (默认: 1234 abcd)",
    )
    parser.add_argument("--email", help="Let's Encrypt 账户邮箱")
    parser.add_argument("--params-file", help="YAML 参数文件 (domain/port/short_ids)")
    parser.add_argument("--no-upgrade", action="store_true", help="跳过 apt-get upgrade")
    parser.add_argument("--xray-version", help="固定的 Xray 版本 (默认见 config.defaults)")
    parser.add_argument("--xray-sha256", help="Xray 发布包的 SHA-256；缺省时读取官方 .dgst")

    remote = parser.add_argument_group("远程部署 (SSH)")
    remote.add_argument("--ssh-host", help="通过 SSH 部署到该主机，而不是本机")
    remote.add_argument("--ssh-user", default="root", help="SSH 用户名 (默认: root)")
    remote.add_argument("--ssh-port", type=int, default=22, help="SSH 端口 (默认: 22)")
    remote.add_argument("--ssh-key", help="SSH 私钥路径")
    remote.add_argument("--ssh-password", help="SSH 密码")

    parser.add_argument("--sudo", action="store_true", help="所有命令通过 sudo 执行")
    parser.add_argument("--rollback", action="store_true", help="失败时回滚本次已完成的步骤")
    parser.add_argument("--dry-run", action="store_true", help="只打印执行计划，不修改主机")
    parser.add_argument("--profile-out", help="把客户端配置另存为 JSON 文件")
    parser.add_argument("--log-dir", default=DEFAULT_LOG_DIR, help="日志目录 (默认: ./logs)")
    parser.add_argument("--verbose", "-v", action="store_true", help="记录每条执行的命令")
    return parser.parse_args(argv)


def build_host(args: argparse.Namespace) -> Host:
    if args.ssh_host:
        return SSHHost(
            args.ssh_host,
            username=args.ssh_user,
            port=args.ssh_port,
            key_path=args.ssh_key,
            password=args.ssh_password,
            sudo=args.sudo,
        )
    sudo = args.sudo
    if not sudo and not LocalHost.is_root():
        log_warning("⚠️ 当前不是 root 用户，将通过 sudo 执行命令。")
        sudo = True
    return LocalHost(sudo=sudo)


def run(args: argparse.Namespace) -> int:
    try:
        params = resolve_parameters(
            args.domain,
            args.port,
            args.short_ids,
            params_file=args.params_file,
        )
    except ParameterError as exc:
        log_error(f"❌ 参数错误：{exc}")
        return 2

    sequencer = ProvisioningSequencer(build_steps(args.profile_out), rollback=args.rollback)
    host = build_host(args)
    ctx = ProvisioningContext(
        host=host,
        params=params,
        email=args.email,
        upgrade=not args.no_upgrade,
        xray_version=args.xray_version,
        xray_sha256=args.xray_sha256,
    )

    mode = f"域名 {params.domain}" if params.has_domain else "localhost（自签名证书）"
    log_info(f"目标：{host.label}，模式：{mode}，端口：{params.port}")

    if args.dry_run:
        for index, (name, enabled) in enumerate(sequencer.plan(ctx), start=1):
            state = "执行" if enabled else "跳过"
            log_info(f"{index}. {name} [{state}]")
        return 0

    try:
        with host:
            sequencer.run(ctx)
    except ProvisionError as exc:
        log_error(f"❌ 步骤「{exc.step or '准备'}」失败：{exc}")
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_dir, verbose=args.verbose)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
