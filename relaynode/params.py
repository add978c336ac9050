"""解析部署参数。Resolve the domain, port and Reality short ids for a run."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import yaml

from .config.defaults import DEFAULT_PORT, DEFAULT_SHORT_IDS, LOCALHOST_NAME
from .errors import ParameterError
from .logging_utils import get_logger

LOGGER = get_logger(__name__)

ENV_DOMAIN = "RELAYNODE_DOMAIN"
ENV_PORT = "RELAYNODE_PORT"
ENV_SHORT_IDS = "RELAYNODE_SHORT_IDS"

_SHORT_ID_RE = re.compile(r"[0-9a-fA-F]{0,16}")


@dataclass(frozen=True)
class ProvisioningParameters:
    """Immutable inputs of one provisioning run."""

    domain: Optional[str]
    port: int = DEFAULT_PORT
    short_ids: tuple[str, ...] = DEFAULT_SHORT_IDS

    @property
    def has_domain(self) -> bool:
        return bool(self.domain)

    @property
    def server_name(self) -> str:
        """Address clients connect to: the domain, else ``localhost``."""

        return self.domain or LOCALHOST_NAME


def parse_port(value: Any, *, source: str) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ParameterError(f"{source} 的值必须是有效的整数端口号，当前为: {value!r}") from exc

    if not 1 <= port <= 65535:
        raise ParameterError(f"{source} 的值 {port} 超出有效范围 (1-65535)。")
    return port


def normalize_short_ids(values: Iterable[str], *, source: str) -> tuple[str, ...]:
    """Validate Reality short ids and drop duplicates, preserving order.

    A short id is a hex string of even length, at most 16 characters.
    """

    seen: list[str] = []
    for raw in values:
        short_id = str(raw).strip().lower()
        if not _SHORT_ID_RE.fullmatch(short_id) or len(short_id) % 2:
            raise ParameterError(
                f"{source} 中的 shortId {raw!r} 无效：必须是偶数长度、不超过 16 位的十六进制字符串。"
            )
        if short_id not in seen:
            seen.append(short_id)
    return tuple(seen)


def _split_csv(value: str) -> list[str]:
    return [item for item in (part.strip() for part in value.split(",")) if item]


def load_params_file(path: str | Path) -> dict[str, Any]:
    """读取 YAML 参数文件。Load ``domain``/``port``/``short_ids`` from YAML."""

    params_path = Path(path)
    try:
        data = yaml.safe_load(params_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ParameterError(f"无法读取参数文件 {params_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ParameterError(f"参数文件 {params_path} 不是有效的 YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ParameterError(f"参数文件 {params_path} 顶层必须是映射。")
    return dict(data)


def resolve_parameters(
    domain: Optional[str] = None,
    port: Any = None,
    short_ids: Optional[Sequence[str]] = None,
    *,
    params_file: str | Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ProvisioningParameters:
    """Combine CLI values, environment variables and a YAML file.

    Precedence per field: explicit argument, then ``RELAYNODE_*``
    environment variables, then the parameters file, then the defaults.
    An empty domain selects localhost mode with a self-signed certificate.
    """

    env = os.environ if environ is None else environ
    file_values = load_params_file(params_file) if params_file else {}

    resolved_domain = (domain or "").strip()
    if not resolved_domain:
        resolved_domain = env.get(ENV_DOMAIN, "").strip()
    if not resolved_domain:
        resolved_domain = str(file_values.get("domain") or "").strip()

    if port not in (None, ""):
        resolved_port = parse_port(port, source="端口参数")
    elif env.get(ENV_PORT, "").strip():
        resolved_port = parse_port(env[ENV_PORT], source=f"环境变量 {ENV_PORT}")
    elif file_values.get("port") not in (None, ""):
        resolved_port = parse_port(file_values["port"], source=f"参数文件 {params_file}")
    else:
        resolved_port = DEFAULT_PORT

    if short_ids:
        resolved_ids = normalize_short_ids(short_ids, source="--short-id")
    elif env.get(ENV_SHORT_IDS, "").strip():
        resolved_ids = normalize_short_ids(_split_csv(env[ENV_SHORT_IDS]), source=f"环境变量 {ENV_SHORT_IDS}")
    elif file_values.get("short_ids"):
        raw_ids = file_values["short_ids"]
        if isinstance(raw_ids, str):
            raw_ids = _split_csv(raw_ids)
        resolved_ids = normalize_short_ids(raw_ids, source=f"参数文件 {params_file}")
    else:
        resolved_ids = ()

    if not resolved_ids:
        resolved_ids = DEFAULT_SHORT_IDS

    params = ProvisioningParameters(
        domain=resolved_domain or None,
        port=resolved_port,
        short_ids=resolved_ids,
    )
    LOGGER.info(
        "Resolved parameters",
        extra={"domain": params.domain, "port": params.port, "short_ids": list(params.short_ids)},
    )
    return params


__all__ = [
    "ENV_DOMAIN",
    "ENV_PORT",
    "ENV_SHORT_IDS",
    "ProvisioningParameters",
    "load_params_file",
    "normalize_short_ids",
    "parse_port",
    "resolve_parameters",
]
