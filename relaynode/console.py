"""彩色终端输出。Colored progress output for the provisioning run."""

from __future__ import annotations

import logging
import sys

BLUE = "\033[34m"
GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"

logger = logging.getLogger(__name__)


def _colorize(message: str, color: str) -> str:
    """用 ANSI 颜色编码包装文本。Return ``message`` wrapped in ANSI color codes."""

    return f"{color}{message}{RESET}"


def logwrite(message: str, *, color: str | None = None, stream=None) -> None:
    """打印信息（可选颜色）并写入日志。Print ``message`` and mirror it to the log file."""

    text = _colorize(message, color) if color else message
    print(text, file=stream or sys.stdout)
    logger.info(message)


def log_info(message: str) -> None:
    """以蓝色输出一般信息。Print an informational message in blue."""

    logwrite(message, color=BLUE)


def log_success(message: str) -> None:
    """以绿色输出成功提示。Print a success message in green."""

    logwrite(message, color=GREEN)


def log_warning(message: str) -> None:
    """以黄色输出警告信息。Print a warning message in yellow."""

    logwrite(message, color=YELLOW)


def log_error(message: str) -> None:
    """以红色输出错误信息到 stderr。Print an error message in red on stderr."""

    logwrite(message, color=RED, stream=sys.stderr)


def log_section(title: str) -> None:
    """打印分隔线用于标记流程步骤。Print a visual separator for a workflow step."""

    divider = "=" * 24
    log_info(divider)
    log_info(f"▶ {title}")
