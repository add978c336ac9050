"""回滚用的文件快照。Remember artifacts before a step overwrites them.

Snapshots are only taken when the run was started with rollback enabled, so
a plain run issues exactly the commands it always did. Undoing a step puts
the previous file back, or deletes the file if this run created it.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from .console import log_warning
from .errors import ProvisionError
from .sequencer import FileSnapshot

logger = logging.getLogger(__name__)


def take_snapshot(ctx, path: str, mode: int) -> None:
    """Record the current content of ``path`` once per run."""

    if not ctx.rollback or path in ctx.snapshots:
        return
    content = ctx.host.read_file(path) if ctx.host.exists(path) else None
    ctx.snapshots[path] = FileSnapshot(path, content, mode)
    logger.debug("快照 %s（%s）", path, "已存在" if content is not None else "不存在")


def restore_snapshot(ctx, path: str) -> None:
    snapshot = ctx.snapshots.pop(path, None)
    if snapshot is None:
        return
    if snapshot.content is None:
        ctx.host.remove(path)
    else:
        log_warning(f"恢复 {path} 的原有内容")
        ctx.host.write_file(path, snapshot.content, mode=snapshot.mode)


@contextmanager
def restored_on_failure(ctx, *paths: str) -> Iterator[None]:
    """Put ``paths`` back if the wrapped block fails part-way.

    The sequencer only compensates steps that completed, so a step that
    writes several files cleans up its own partial writes.
    """

    try:
        yield
    except ProvisionError:
        if ctx.rollback:
            for path in paths:
                try:
                    restore_snapshot(ctx, path)
                except ProvisionError as exc:
                    log_warning(f"⚠️ 恢复 {path} 失败：{exc}")
        raise
