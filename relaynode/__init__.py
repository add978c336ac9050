"""RelayNode：单节点 Xray VLESS + Reality 部署工具。

Provisioning sequencer for a single Xray relay node. :mod:`relaynode.main`
exposes the command line entry point; :mod:`relaynode.tools` holds one
module per provisioning step.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
