"""Configuration parsing and validation for lamp-setup."""

import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

IPV4_PATTERN = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}")


def is_valid_ip(value: str) -> bool:
    """Check for a dotted quad with every octet in 0..255."""
    if not IPV4_PATTERN.fullmatch(value):
        return False
    return all(int(octet) <= 255 for octet in value.split("."))


class ProvisioningRequest(BaseModel):
    """Operator-supplied answers, validated before anything touches the host."""

    ip_address: str
    domain: str
    mysql_root_password: str
    phpmyadmin_password: str
    samba_username: str
    samba_password: str

    @field_validator("ip_address")
    @classmethod
    def validate_ip(cls, v: str) -> str:
        if not is_valid_ip(v):
            raise ValueError(f"Invalid IP address: {v}")
        return v

    @property
    def octets(self) -> list[str]:
        return self.ip_address.split(".")

    @property
    def reverse_zone(self) -> str:
        """Reverse zone prefix from the first three octets, e.g. 1.168.192."""
        a, b, c, _ = self.octets
        return f"{c}.{b}.{a}"

    @property
    def host_octet(self) -> str:
        """Last octet, used as the PTR record key."""
        return self.octets[3]


class TargetConfig(BaseModel):
    """Where to provision: the local machine or a host reached over SSH."""

    local: bool = True
    host: str | None = None
    ssh_user: str = "root"
    ssh_port: int = 22
    ssh_key_path: str | None = None
    ssh_password: str | None = None

    @model_validator(mode="after")
    def validate_remote(self):
        if not self.local and not self.host:
            raise ValueError("host required when target is not local")
        return self


class RetryPolicy(BaseModel):
    """How many times to retry a failing step and how long to wait in between.

    The default is a fixed delay. A backoff above 1.0 grows the delay
    geometrically with each attempt.
    """

    max_attempts: int = Field(default=3, ge=1)
    delay: float = Field(default=5.0, ge=0)
    backoff: float = Field(default=1.0, ge=1.0)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return self.delay * self.backoff ** (attempt - 1)


class DnsConfig(BaseModel):
    """bind9 and resolver settings."""

    fallback_nameserver: str = "8.8.8.8"
    serial_sequence: int = Field(default=1, ge=0, le=99)
    ttl: int = 604800
    zones_file: str = "/etc/bind/named.conf.default-zones"
    forward_zone_file: str = "/etc/bind/smk.db"
    reverse_zone_file: str = "/etc/bind/smk.ip"
    resolver_file: str = "/etc/resolv.conf"
    aliases: list[str] = Field(default_factory=lambda: ["www", "mail", "ftp", "ntp", "proxy"])


class WebConfig(BaseModel):
    """apache2 settings."""

    root: str = "/var/www"
    user: str = "www-data"
    site: str = "000-default.conf"
    modules: list[str] = Field(default_factory=lambda: ["rewrite", "ssl"])
    phpmyadmin_conf: str = "/etc/phpmyadmin/apache.conf"

    @property
    def site_path(self) -> str:
        return f"/etc/apache2/sites-available/{self.site}"


class ShareConfig(BaseModel):
    """samba settings."""

    name: str = "www"
    workgroup: str = "WORKGROUP"
    config_file: str = "/etc/samba/smb.conf"


class SetupConfig(BaseModel):
    """Main configuration for lamp-setup.

    Every field has a default, so running without a config file provisions
    the stock bind9/apache2/mysql/samba stack on the local machine.
    """

    target: TargetConfig = Field(default_factory=TargetConfig)
    packages: list[str] = Field(
        default_factory=lambda: [
            "bind9",
            "apache2",
            "mysql-server",
            "apache2-utils",
            "phpmyadmin",
            "samba",
        ]
    )
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    dns: DnsConfig = Field(default_factory=DnsConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    share: ShareConfig = Field(default_factory=ShareConfig)
    services: list[str] = Field(default_factory=lambda: ["bind9", "apache2", "mysql", "smbd"])
    strict_services: bool = False  # Treat service restart/enable failures as fatal


def load_config(path: str | Path | None = None) -> SetupConfig:
    """Load and validate configuration from a YAML file.

    With no path, returns the defaults.
    """
    if path is None:
        return SetupConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return SetupConfig(**raw)


def validate_config(config: SetupConfig) -> list[str]:
    """Perform additional validation checks on the config.

    Returns a list of warnings (empty if all good).
    """
    warnings = []

    if not is_valid_ip(config.dns.fallback_nameserver):
        warnings.append(f"Invalid fallback nameserver: {config.dns.fallback_nameserver}")

    if config.retry.max_attempts == 1:
        warnings.append("Retry policy allows a single attempt - transient apt failures will be fatal")

    for required in ("bind9", "apache2", "samba"):
        if required not in config.packages:
            warnings.append(f"Package list does not include {required} - later steps may fail")

    if config.strict_services:
        warnings.append("strict_services is on - any service restart failure will abort the run")

    return warnings
