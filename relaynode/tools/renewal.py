"""证书自动续期。Daily cron job that renews Let's Encrypt certificates."""

from __future__ import annotations

import logging
import posixpath
import shlex

from ..config.defaults import LETSENCRYPT_LIVE_DIR, RENEWAL_SCHEDULE
from ..console import log_info
from ..errors import HostCommandError, RenewalError
from ..snapshots import restore_snapshot, take_snapshot

logger = logging.getLogger(__name__)


def render_renewal_cron(domain: str, cert_path: str, key_path: str, service_name: str) -> str:
    """Return the ``/etc/cron.d`` entry for ``domain``.

    certbot only touches ``/etc/letsencrypt``; the deploy hook copies the
    renewed files to the paths Xray reads before the service is reloaded.
    """

    live_dir = posixpath.join(LETSENCRYPT_LIVE_DIR, domain)
    deploy_hook = " && ".join(
        f"cp {shlex.quote(posixpath.join(live_dir, source))} {shlex.quote(target)}"
        for source, target in (("fullchain.pem", cert_path), ("privkey.pem", key_path))
    )
    return (
        f"{RENEWAL_SCHEDULE} root certbot renew --quiet --deploy-hook {shlex.quote(deploy_hook)}"
        f" && systemctl reload-or-restart {shlex.quote(service_name)}\n"
    )


def schedule_renewal(ctx) -> None:
    domain = ctx.params.domain
    if not domain:
        return
    profile = ctx.profile
    log_info("创建证书自动续期任务……")
    take_snapshot(ctx, profile.renewal_cron_path, 0o644)
    entry = render_renewal_cron(domain, profile.cert_path, profile.cert_key_path, profile.service_name)
    try:
        ctx.host.write_file(profile.renewal_cron_path, entry, mode=0o644)
    except HostCommandError as exc:
        raise RenewalError(f"写入续期任务失败：{exc}") from exc
    logger.info("续期任务已写入 %s", profile.renewal_cron_path)


def restore_renewal(ctx) -> None:
    restore_snapshot(ctx, ctx.profile.renewal_cron_path)
