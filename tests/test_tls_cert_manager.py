"""TLS 证书管理测试。Tests for certificate provisioning."""

from __future__ import annotations

import pytest

from relaynode.errors import CertificateError
from relaynode.tools.tls_cert_manager import (
    SOURCE_LETSENCRYPT,
    SOURCE_SELF_SIGNED,
    TLSCertManager,
    certbot_command,
    provision_certificate,
    restore_certificate,
    self_signed_command,
)

CERT = "/etc/xray/cert.crt"
KEY = "/etc/xray/key.key"


class TestSelfSigned:
    """测试自签名证书路径。"""

    def test_command_uses_localhost_and_365_days(self):
        command = self_signed_command(CERT, KEY)
        assert "-days 365" in command
        assert "/CN=localhost" in command
        assert "-x509" in command
        assert "-nodes" in command

    def test_issue_without_network(self, fake_host):
        bundle = TLSCertManager(fake_host, CERT, KEY).ensure_certificate(None)
        assert bundle.source == SOURCE_SELF_SIGNED
        assert fake_host.exists(CERT) and fake_host.exists(KEY)
        assert not fake_host.ran("certbot")
        assert not fake_host.ran("systemctl stop nginx")

    def test_openssl_failure_is_fatal(self, fake_host):
        fake_host.fail_on["openssl req"] = (1, "openssl: error")
        with pytest.raises(CertificateError):
            TLSCertManager(fake_host, CERT, KEY).issue_self_signed()


class TestLetsEncrypt:
    """测试 Let's Encrypt 路径。"""

    def test_certbot_command(self):
        assert "--standalone" in certbot_command("vpn.example.com")
        assert "-d vpn.example.com" in certbot_command("vpn.example.com")
        assert "--register-unsafely-without-email" in certbot_command("vpn.example.com")
        assert "-m ops@example.com" in certbot_command("vpn.example.com", "ops@example.com")

    def test_issue_copies_live_files(self, fake_host):
        bundle = TLSCertManager(fake_host, CERT, KEY).ensure_certificate("vpn.example.com")
        assert bundle.source == SOURCE_LETSENCRYPT
        assert fake_host.files[CERT] == b"FULLCHAIN"
        assert fake_host.files[KEY] == b"PRIVKEY"
        stop_index = fake_host.commands.index("systemctl stop nginx")
        certbot_index = next(i for i, c in enumerate(fake_host.commands) if c.startswith("certbot"))
        assert stop_index < certbot_index

    def test_nginx_stop_failure_is_tolerated(self, fake_host):
        fake_host.fail_on["systemctl stop nginx"] = (5, "Unit nginx.service not loaded.")
        bundle = TLSCertManager(fake_host, CERT, KEY).issue_letsencrypt("vpn.example.com")
        assert bundle.cert_path == CERT

    def test_issuance_failure_is_fatal_and_copies_nothing(self, fake_host):
        fake_host.fail_on["certbot certonly"] = (1, "Challenge failed")
        with pytest.raises(CertificateError):
            TLSCertManager(fake_host, CERT, KEY).issue_letsencrypt("vpn.example.com")
        assert CERT not in fake_host.files
        assert not fake_host.ran("cp ")


def test_provision_certificate_step(make_ctx, fake_host, domain_params):
    ctx = make_ctx(domain_params, email="ops@example.com")
    provision_certificate(ctx)
    assert ctx.certificate.source == SOURCE_LETSENCRYPT
    assert fake_host.ran("-m ops@example.com")


class TestCertificateRollback:
    """测试回滚时恢复原有证书。"""

    def test_restore_puts_previous_certificate_back(self, make_ctx, fake_host, domain_params):
        fake_host.files[CERT] = b"OLD-CERT"
        fake_host.files[KEY] = b"OLD-KEY"
        ctx = make_ctx(domain_params, rollback=True)
        provision_certificate(ctx)
        assert fake_host.files[CERT] == b"FULLCHAIN"

        restore_certificate(ctx)
        assert fake_host.files[CERT] == b"OLD-CERT"
        assert fake_host.files[KEY] == b"OLD-KEY"
        assert ctx.certificate is None

    def test_partial_copy_is_reverted(self, make_ctx, fake_host, domain_params):
        """证书已复制、私钥复制失败：不留下不匹配的证书对。"""
        fake_host.files[CERT] = b"OLD-CERT"
        fake_host.files[KEY] = b"OLD-KEY"
        fake_host.fail_on["privkey.pem"] = (1, "cp: cannot stat")
        with pytest.raises(CertificateError):
            provision_certificate(make_ctx(domain_params, rollback=True))
        assert fake_host.files[CERT] == b"OLD-CERT"
        assert fake_host.files[KEY] == b"OLD-KEY"

    def test_certificate_created_by_run_is_removed(self, make_ctx, fake_host, localhost_params):
        ctx = make_ctx(localhost_params, rollback=True)
        provision_certificate(ctx)
        restore_certificate(ctx)
        assert CERT not in fake_host.files
        assert KEY not in fake_host.files
