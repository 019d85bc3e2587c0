"""Configuration file rendering for lamp-setup."""

from datetime import date, datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from pydantic import BaseModel, Field
from rich.console import Console

from lampsetup.config import ProvisioningRequest, SetupConfig
from lampsetup.connection import HostConnection
from lampsetup.errors import ProvisioningError

console = Console()

TEMPLATE_DIR = Path(__file__).parent / "templates"


class RenderedConfig(BaseModel):
    """One rendered configuration file and where it goes."""

    key: str
    path: str
    content: str


class RenderedConfigSet(BaseModel):
    """All configuration files rendered for a single run, in write order."""

    files: dict[str, RenderedConfig] = Field(default_factory=dict)

    def __getitem__(self, key: str) -> RenderedConfig:
        return self.files[key]

    def add(self, key: str, path: str, content: str) -> None:
        self.files[key] = RenderedConfig(key=key, path=path, content=content)


def template_environment() -> Environment:
    """Jinja2 environment over the bundled templates."""
    return Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def zone_serial(today: date, sequence: int = 1) -> str:
    """SOA serial in the usual YYYYMMDDnn form.

    The sequence is fixed per run, so two runs on the same day produce the
    same serial.
    """
    return f"{today:%Y%m%d}{sequence:02d}"


def backup_path(path: str, now: datetime) -> str:
    return f"{path}.backup.{now:%Y%m%d_%H%M%S}"


def template_context(
    request: ProvisioningRequest,
    config: SetupConfig,
    today: date,
    hostname: str,
) -> dict:
    """Values shared by every template."""
    return {
        "ip": request.ip_address,
        "domain": request.domain,
        "reverse_zone": request.reverse_zone,
        "host_octet": request.host_octet,
        "samba_username": request.samba_username,
        "serial": zone_serial(today, config.dns.serial_sequence),
        "ttl": config.dns.ttl,
        "fallback_nameserver": config.dns.fallback_nameserver,
        "forward_zone_file": config.dns.forward_zone_file,
        "reverse_zone_file": config.dns.reverse_zone_file,
        "aliases": config.dns.aliases,
        "web_root": config.web.root.rstrip("/"),
        "web_user": config.web.user,
        "share_name": config.share.name,
        "workgroup": config.share.workgroup,
        "hostname": hostname,
    }


def render_configs(
    request: ProvisioningRequest,
    config: SetupConfig,
    today: date | None = None,
    hostname: str = "localhost",
) -> RenderedConfigSet:
    """Render every managed configuration file from the request.

    Pure: no host access, and the only time-dependent value is the date in
    the zone serials.
    """
    if today is None:
        today = date.today()

    env = template_environment()
    context = template_context(request, config, today, hostname)

    targets = [
        ("resolver", "resolv.conf.j2", config.dns.resolver_file),
        ("zones", "named.conf.default-zones.j2", config.dns.zones_file),
        ("forward_zone", "forward.db.j2", config.dns.forward_zone_file),
        ("reverse_zone", "reverse.db.j2", config.dns.reverse_zone_file),
        ("vhost", "vhost.conf.j2", config.web.site_path),
        ("share", "smb.conf.j2", config.share.config_file),
    ]

    rendered = RenderedConfigSet()
    for key, template_name, path in targets:
        rendered.add(key, path, env.get_template(template_name).render(**context))
    return rendered


def render_landing_page(request: ProvisioningRequest) -> str:
    """Render the initial index.php for the document root."""
    return template_environment().get_template("index.php.j2").render(domain=request.domain)


def backup_file(host: HostConnection, path: str, now: datetime) -> str | None:
    """Copy an existing file aside before it is overwritten.

    Returns the backup path, or None if there was nothing to back up.
    A failed backup is fatal: we never overwrite a file we could not save.
    """
    if not host.file_exists(path):
        return None

    destination = backup_path(path, now)
    if not host.copy_file(path, destination):
        raise ProvisioningError(f"Failed to backup file {path}")

    console.print(f"[dim]  Backed up {path} -> {destination}[/dim]")
    return destination


def write_config(
    host: HostConnection,
    path: str,
    content: str,
    now: datetime | None = None,
) -> str | None:
    """Back up and overwrite one file. Returns the backup path, if any."""
    if now is None:
        now = datetime.now()

    backup = backup_file(host, path, now)
    host.write_file(path, content)
    return backup


def write_configs(
    host: HostConnection,
    rendered: RenderedConfigSet,
    now: datetime | None = None,
) -> dict[str, str]:
    """Write every rendered file, backing up what was there.

    Returns a dict mapping each overwritten path to its backup.
    """
    if now is None:
        now = datetime.now()

    backups = {}
    for item in rendered.files.values():
        console.print(f"[cyan]Writing {item.path}...[/cyan]")
        backup = write_config(host, item.path, item.content, now)
        if backup:
            backups[item.path] = backup

    return backups


def setup_configs(
    host: HostConnection,
    config: SetupConfig,
    request: ProvisioningRequest,
    now: datetime | None = None,
) -> RenderedConfigSet:
    """Render and write all configuration files."""
    console.print("\n[bold blue]Phase 3: Configuration Files[/bold blue]\n")

    if now is None:
        now = datetime.now()

    rendered = render_configs(request, config, today=now.date(), hostname=host.hostname())
    backups = write_configs(host, rendered, now)

    console.print(f"[dim]  DNS serial: {zone_serial(now.date(), config.dns.serial_sequence)}[/dim]")
    console.print(f"[dim]  Reverse zone: {request.reverse_zone}.in-addr.arpa[/dim]")
    console.print(f"[dim]  {len(backups)} existing file(s) backed up[/dim]")
    console.print("\n[bold green]✓ Configuration files written[/bold green]")

    return rendered
