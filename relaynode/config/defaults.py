"""Project-wide default values for RelayNode.

Every artifact the provisioner writes lives at a fixed, host-global path.
Re-running the provisioner overwrites these files in place, so a host
carries exactly one active relay profile at a time.
"""

DEFAULT_PORT = 443
DEFAULT_SHORT_IDS = ("1234", "abcd")
LOCALHOST_NAME = "localhost"

# ACME standalone HTTP-01 需要临时占用 80 端口
ACME_CHALLENGE_PORT = 80

BASE_PACKAGES = (
    "curl",
    "wget",
    "jq",
    "ufw",
    "git",
    "gnupg",
    "ca-certificates",
    "lsof",
    "openssl",
)
CERTBOT_PACKAGES = ("certbot", "python3-certbot-nginx")

# Xray 运行时
XRAY_BINARY_PATH = "/usr/local/bin/xray"
XRAY_CONFIG_DIR = "/etc/xray"
XRAY_CONFIG_PATH = "/etc/xray/config.json"
XRAY_LOG_DIR = "/var/log/xray"
XRAY_SERVICE_NAME = "xray.service"
XRAY_SERVICE_UNIT_PATH = "/etc/systemd/system/xray.service"
XRAY_RELEASE_VERSION = "v1.8.24"
XRAY_RELEASE_ASSET = "Xray-linux-64.zip"
XRAY_RELEASE_URL = "https://github.com/XTLS/Xray-core/releases/download/{version}/{asset}"
XRAY_LIMIT_NOFILE = 1048576

# Reality 密钥
REALITY_KEY_DIR = "/etc/xray/keys"
REALITY_PRIVATE_KEY_PATH = "/etc/xray/keys/reality.key"
REALITY_PUBLIC_KEY_PATH = "/etc/xray/keys/reality.pub"
REALITY_KEY_BITS = 2048
REALITY_FALLBACK_DEST = "127.0.0.1:80"

# TLS 证书
TLS_CERT_PATH = "/etc/xray/cert.crt"
TLS_KEY_PATH = "/etc/xray/key.key"
SELF_SIGNED_DAYS = 365
LETSENCRYPT_LIVE_DIR = "/etc/letsencrypt/live"

# 证书自动续期
RENEWAL_CRON_PATH = "/etc/cron.d/xray-letsencrypt"
RENEWAL_SCHEDULE = "0 3 * * *"

DEFAULT_DNS_LIST = [
    "114.114.114.114",  # 114
    "1.1.1.1",  # Cloudflare
]

DEFAULT_ALPN = ["http/1.1"]
DEFAULT_PROFILE_REMARK = "Xray Server"

DEFAULT_HTTP_TIMEOUT = 60
DEFAULT_LOG_DIR = "logs"
