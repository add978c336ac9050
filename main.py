#!/usr/bin/env python3
"""主程序入口：在本机或通过 SSH 一键部署 Xray VLESS + Reality 中继节点。

用法：``python main.py [domain] [port]``，等价于 ``relaynode [domain] [port]``。
"""

from __future__ import annotations

import sys

if sys.version_info < (3, 10):
    raise SystemExit(
        "当前 Python 解释器版本过低。本工具至少需要 Python 3.10，请改用 python3 运行。"
    )

from relaynode.main import main

if __name__ == "__main__":
    sys.exit(main())
