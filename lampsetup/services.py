"""Service reconciliation and validation for lamp-setup.

Failures in this phase are warnings: they are printed, collected for the
final summary, and the run continues.
"""

import io
import shlex
from datetime import datetime

from rich.console import Console

from lampsetup.config import ProvisioningRequest, SetupConfig
from lampsetup.connection import HostConnection
from lampsetup.errors import ProvisioningError
from lampsetup.render import render_landing_page, write_config

console = Console()

APACHE_CONF = "/etc/apache2/apache2.conf"


def _warn(warnings: list[str], message: str) -> None:
    console.print(f"[yellow]⚠ {message}[/yellow]")
    warnings.append(message)


def write_landing_page(
    host: HostConnection,
    config: SetupConfig,
    request: ProvisioningRequest,
    now: datetime | None = None,
) -> None:
    """Create the initial index.php in the document root."""
    root = config.web.root.rstrip("/")
    console.print(f"[cyan]Creating landing page in {root}...[/cyan]")

    host.sudo(f"mkdir -p {shlex.quote(root)}", hide=True)
    write_config(host, f"{root}/index.php", render_landing_page(request), now)

    console.print("[green]✓ Landing page created[/green]")


def normalize_web_permissions(host: HostConnection, config: SetupConfig) -> list[str]:
    """Hand the document root to the web server user.

    Directories end up 755 and files 644.
    """
    console.print("[cyan]Setting permissions on the document root...[/cyan]")

    warnings = []
    root = config.web.root.rstrip("/")
    user = config.web.user
    owner = shlex.quote(f"{user}:{user}")
    tree = shlex.quote(f"{root}/")
    commands = [
        f"chown -R {owner} {tree}",
        f"find {tree} -type d -exec chmod 755 {{}} \\;",
        f"find {tree} -type f -exec chmod 644 {{}} \\;",
    ]
    for command in commands:
        if not host.check(command):
            _warn(warnings, f"Permission command failed: {command}")

    if not warnings:
        console.print(f"[green]✓ {root} owned by {user}[/green]")
    return warnings


def ensure_share_user(host: HostConnection, username: str) -> list[str]:
    """Create the operating system account behind the share."""
    console.print(f"[cyan]Creating share user '{username}'...[/cyan]")

    warnings = []
    if host.check(f"id {shlex.quote(username)}"):
        console.print(f"[yellow]User '{username}' already exists, updating...[/yellow]")
    elif not host.check(f"useradd -m {shlex.quote(username)}"):
        _warn(warnings, f"Failed to create user {username}")
    else:
        console.print(f"[green]✓ User '{username}' created[/green]")
    return warnings


def _send_secret_twice(host: HostConnection, command: str, secret: str) -> bool:
    # passwd and smbpasswd both ask for the new password and a confirmation
    return host.check(command, in_stream=io.StringIO(f"{secret}\n{secret}\n"))


def set_system_password(host: HostConnection, username: str, password: str) -> bool:
    return _send_secret_twice(host, f"passwd {shlex.quote(username)}", password)


def set_samba_password(host: HostConnection, username: str, password: str) -> bool:
    return _send_secret_twice(host, f"smbpasswd -s -a {shlex.quote(username)}", password)


def set_share_credentials(host: HostConnection, username: str, password: str) -> list[str]:
    """Set both passwords for the share account.

    The OS account and the samba password database get the same secret.
    """
    console.print(f"[cyan]Setting passwords for '{username}'...[/cyan]")

    warnings = []
    if not set_system_password(host, username, password):
        _warn(warnings, f"Failed to set system password for {username}")
    if not set_samba_password(host, username, password):
        _warn(warnings, f"Failed to set samba password for {username}")

    if not warnings:
        console.print(f"[green]✓ System and samba passwords set for '{username}'[/green]")
    return warnings


def include_phpmyadmin(host: HostConnection, config: SetupConfig) -> None:
    """Load the phpMyAdmin apache config from apache2.conf."""
    line = f"Include {config.web.phpmyadmin_conf}"
    if host.file_contains(APACHE_CONF, line):
        console.print("[dim]phpMyAdmin already included in apache2.conf[/dim]")
        return

    host.append_file(APACHE_CONF, line + "\n")
    console.print("[green]✓ phpMyAdmin included in apache2.conf[/green]")


def enable_site_and_modules(host: HostConnection, config: SetupConfig) -> list[str]:
    """Enable the provisioned site and the apache modules it needs."""
    console.print("[cyan]Enabling apache site and modules...[/cyan]")

    warnings = []
    if not host.check(f"a2ensite {shlex.quote(config.web.site)}"):
        _warn(warnings, f"Failed to enable site {config.web.site}")
    for module in config.web.modules:
        if not host.check(f"a2enmod {shlex.quote(module)}"):
            _warn(warnings, f"Failed to enable apache module {module}")

    if not warnings:
        console.print(f"[green]✓ Site {config.web.site} and modules enabled[/green]")
    return warnings


def restart_services(host: HostConnection, config: SetupConfig) -> list[str]:
    """Restart then enable every managed service.

    Each service is attempted even if an earlier one failed. Failures are
    warnings unless strict_services is set.
    """
    console.print("[cyan]Restarting services...[/cyan]")

    warnings = []
    for service in config.services:
        for action in ("restart", "enable"):
            if host.check(f"systemctl {action} {shlex.quote(service)}"):
                continue
            message = f"Failed to {action} {service}"
            if config.strict_services:
                raise ProvisioningError(message)
            _warn(warnings, message)

        console.print(f"[dim]  {service} done[/dim]")

    if not warnings:
        console.print("[green]✓ All services restarted and enabled[/green]")
    return warnings


def validate_configuration(
    host: HostConnection,
    config: SetupConfig,
    request: ProvisioningRequest,
) -> list[str]:
    """Run the read-only syntax checks for apache and bind."""
    console.print("\n[bold blue]Phase 5: Validation[/bold blue]\n")

    warnings = []
    # domain is free-form operator input and reaches a root shell
    forward_zone = shlex.quote(request.domain)
    reverse_zone = shlex.quote(f"{request.reverse_zone}.in-addr.arpa")
    checks = [
        ("Apache config test", "apache2ctl configtest"),
        ("BIND config test", "named-checkconf"),
        (
            "Forward zone check",
            f"named-checkzone {forward_zone} {shlex.quote(config.dns.forward_zone_file)}",
        ),
        (
            "Reverse zone check",
            f"named-checkzone {reverse_zone} {shlex.quote(config.dns.reverse_zone_file)}",
        ),
    ]
    for name, command in checks:
        if host.check(command):
            console.print(f"[green]✓ {name} passed[/green]")
        else:
            _warn(warnings, f"{name} failed")

    return warnings


def reconcile_services(
    host: HostConnection,
    config: SetupConfig,
    request: ProvisioningRequest,
    now: datetime | None = None,
) -> list[str]:
    """Apply the written configuration to the running system.

    Returns the list of warnings raised along the way.
    """
    console.print("\n[bold blue]Phase 4: Services[/bold blue]\n")

    warnings = []
    write_landing_page(host, config, request, now)
    warnings += normalize_web_permissions(host, config)
    warnings += ensure_share_user(host, request.samba_username)
    warnings += set_share_credentials(host, request.samba_username, request.samba_password)
    include_phpmyadmin(host, config)
    warnings += enable_site_and_modules(host, config)
    warnings += restart_services(host, config)

    console.print("\n[bold green]✓ Service reconciliation complete[/bold green]")
    return warnings
