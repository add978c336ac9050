"""密钥、服务与续期测试。Tests for key material, the service unit and renewal."""

from __future__ import annotations

import shlex

import pytest

from relaynode.errors import KeyGenerationError, ServiceError
from relaynode.tools.reality_keys import flatten_public_key, generate_reality_keys, restore_reality_keys
from relaynode.tools.renewal import render_renewal_cron, schedule_renewal
from relaynode.tools.service_manager import register_service, render_service_unit, restore_service
from tests.conftest import FAKE_PUBLIC_PEM


class TestRealityKeys:
    """测试 Reality 密钥生成。"""

    def test_flatten_public_key(self):
        flat = flatten_public_key(FAKE_PUBLIC_PEM)
        assert "-----" not in flat
        assert "\n" not in flat
        assert flat.startswith("MIIBIjAN")

    def test_generates_rsa_2048(self, make_ctx, fake_host, localhost_params):
        ctx = make_ctx(localhost_params)
        generate_reality_keys(ctx)
        assert fake_host.ran("openssl genrsa -out /etc/xray/keys/reality.key 2048")
        assert fake_host.ran("openssl rsa -in /etc/xray/keys/reality.key -pubout -out /etc/xray/keys/reality.pub")
        assert ctx.key_pair.public_key == flatten_public_key(fake_host.text("/etc/xray/keys/reality.pub"))

    def test_keys_rotate_on_every_run(self, make_ctx, fake_host, localhost_params):
        """每次运行都会重新生成密钥。"""
        first = make_ctx(localhost_params)
        generate_reality_keys(first)
        second = make_ctx(localhost_params)
        generate_reality_keys(second)
        assert first.key_pair.public_key != second.key_pair.public_key

    def test_openssl_failure(self, make_ctx, fake_host, localhost_params):
        fake_host.fail_on["openssl genrsa"] = (1, "unable to write key")
        with pytest.raises(KeyGenerationError):
            generate_reality_keys(make_ctx(localhost_params))


class TestServiceManager:
    """测试 systemd 服务注册。"""

    def test_unit_contents(self):
        unit = render_service_unit("/usr/local/bin/xray", "/etc/xray/config.json")
        assert "ExecStart=/usr/local/bin/xray run -config /etc/xray/config.json" in unit
        assert "Restart=always" in unit
        assert "User=root" in unit
        assert "LimitNOFILE=1048576" in unit
        assert "WantedBy=multi-user.target" in unit

    def test_register_reloads_enables_and_restarts(self, make_ctx, fake_host, localhost_params):
        ctx = make_ctx(localhost_params)
        register_service(ctx)
        systemctl = [c for c in fake_host.commands if c.startswith("systemctl")]
        assert systemctl[:3] == [
            "systemctl daemon-reload",
            "systemctl enable xray.service",
            "systemctl restart xray.service",
        ]
        assert fake_host.text("/etc/systemd/system/xray.service") == ctx.service_unit

    def test_rerun_always_restarts(self, make_ctx, fake_host, localhost_params):
        register_service(make_ctx(localhost_params))
        register_service(make_ctx(localhost_params))
        assert fake_host.commands.count("systemctl restart xray.service") == 2

    def test_restart_failure(self, make_ctx, fake_host, localhost_params):
        fake_host.fail_on["systemctl restart"] = (1, "Job for xray.service failed")
        with pytest.raises(ServiceError):
            register_service(make_ctx(localhost_params))


class TestRenewal:
    """测试证书续期任务。"""

    def test_cron_entry(self):
        entry = render_renewal_cron("vpn.example.com", "/etc/xray/cert.crt", "/etc/xray/key.key", "xray.service")
        assert entry.startswith("0 3 * * * root certbot renew --quiet")
        assert "/etc/letsencrypt/live/vpn.example.com/fullchain.pem /etc/xray/cert.crt" in entry
        assert entry.rstrip().endswith("systemctl reload-or-restart xray.service")

    def test_skipped_without_domain(self, make_ctx, fake_host, localhost_params):
        schedule_renewal(make_ctx(localhost_params))
        assert "/etc/cron.d/xray-letsencrypt" not in fake_host.files

    def test_written_with_domain(self, make_ctx, fake_host, domain_params):
        schedule_renewal(make_ctx(domain_params))
        assert "certbot renew" in fake_host.text("/etc/cron.d/xray-letsencrypt")

    def test_deploy_hook_quotes_each_path(self):
        """域名中的 shell 元字符不会逃逸出 cp 的参数。"""
        entry = render_renewal_cron("x;rm -rf /", "/srv/my node/cert.crt", "/etc/xray/key.key", "xray.service")
        tokens = shlex.split(entry)
        hook = shlex.split(tokens[tokens.index("--deploy-hook") + 1])
        assert hook == [
            "cp",
            "/etc/letsencrypt/live/x;rm -rf /fullchain.pem",
            "/srv/my node/cert.crt",
            "&&",
            "cp",
            "/etc/letsencrypt/live/x;rm -rf /privkey.pem",
            "/etc/xray/key.key",
        ]
        assert tokens[-2:] == ["reload-or-restart", "xray.service"]


PRIVATE_KEY = "/etc/xray/keys/reality.key"
PUBLIC_KEY = "/etc/xray/keys/reality.pub"
UNIT = "/etc/systemd/system/xray.service"


class TestRestoreOnRollback:
    """测试回滚时恢复原有的密钥与服务单元。"""

    def test_keys_restored_after_rotation(self, make_ctx, fake_host, localhost_params):
        generate_reality_keys(make_ctx(localhost_params))
        previous = dict(fake_host.files)

        ctx = make_ctx(localhost_params, rollback=True)
        generate_reality_keys(ctx)
        assert fake_host.files[PUBLIC_KEY] != previous[PUBLIC_KEY]

        restore_reality_keys(ctx)
        assert fake_host.files[PRIVATE_KEY] == previous[PRIVATE_KEY]
        assert fake_host.files[PUBLIC_KEY] == previous[PUBLIC_KEY]
        assert ctx.key_pair is None

    def test_keys_created_by_run_are_removed(self, make_ctx, fake_host, localhost_params):
        ctx = make_ctx(localhost_params, rollback=True)
        generate_reality_keys(ctx)
        restore_reality_keys(ctx)
        assert PRIVATE_KEY not in fake_host.files
        assert PUBLIC_KEY not in fake_host.files

    def test_partial_key_generation_is_reverted(self, make_ctx, fake_host, localhost_params):
        """私钥已覆盖但导出公钥失败：旧私钥被放回。"""
        generate_reality_keys(make_ctx(localhost_params))
        previous = fake_host.files[PRIVATE_KEY]

        fake_host.fail_on["openssl rsa"] = (1, "unable to load Private Key")
        with pytest.raises(KeyGenerationError):
            generate_reality_keys(make_ctx(localhost_params, rollback=True))
        assert fake_host.files[PRIVATE_KEY] == previous

    def test_failed_restart_restores_previous_unit(self, make_ctx, fake_host, localhost_params):
        fake_host.files[UNIT] = b"[Unit]\nDescription=previous\n"
        fake_host.fail_on["systemctl restart"] = (1, "Job for xray.service failed")
        ctx = make_ctx(localhost_params, rollback=True)

        with pytest.raises(ServiceError):
            register_service(ctx)

        assert fake_host.text(UNIT) == "[Unit]\nDescription=previous\n"
        assert not fake_host.ran("systemctl disable --now")
        # 旧服务原本在运行：等旧配置恢复后再重启
        assert len(ctx.after_rollback) == 1

    def test_failed_first_install_removes_unit(self, make_ctx, fake_host, localhost_params):
        fake_host.fail_on["systemctl restart"] = (1, "Job for xray.service failed")
        ctx = make_ctx(localhost_params, rollback=True)
        with pytest.raises(ServiceError):
            register_service(ctx)
        assert UNIT not in fake_host.files
        assert fake_host.ran("systemctl disable --now xray.service")
        assert ctx.after_rollback == []

    def test_restore_without_snapshot_stops_service(self, make_ctx, fake_host, localhost_params):
        ctx = make_ctx(localhost_params)
        register_service(ctx)
        restore_service(ctx)
        assert UNIT not in fake_host.files
        assert ctx.service_unit is None
