"""Package installation for lamp-setup."""

import io
import shlex
import time
from typing import Callable

from rich.console import Console

from lampsetup.config import ProvisioningRequest, RetryPolicy, SetupConfig
from lampsetup.connection import HostConnection
from lampsetup.errors import PackageInstallError, ProvisioningError

console = Console()

APT = "DEBIAN_FRONTEND=noninteractive apt-get"

# Stale locks left behind by an interrupted apt/dpkg run
APT_LOCK_FILES = [
    "/var/lib/apt/lists/lock",
    "/var/cache/apt/archives/lock",
    "/var/lib/dpkg/lock*",
]


def repair_dpkg(host: HostConnection) -> bool:
    """Finish configuring any packages left half-installed."""
    return host.check("dpkg --configure -a")


def clean_package_cache(host: HostConnection) -> None:
    """Clean the apt cache and drop unused dependencies."""
    console.print("[cyan]Cleaning package cache...[/cyan]")
    for command in ("clean", "autoremove -y", "autoclean"):
        if not host.check(f"{APT} {command}"):
            console.print(f"[yellow]⚠ apt-get {command} failed[/yellow]")


def update_package_lists(host: HostConnection) -> None:
    """Run apt-get update, clearing stale locks and retrying once on failure."""
    console.print("[cyan]Updating package lists...[/cyan]")

    if not host.check(f"{APT} update -y"):
        console.print("[yellow]⚠ Update failed, attempting fixes...[/yellow]")
        host.check(f"rm -f {' '.join(APT_LOCK_FILES)}")
        repair_dpkg(host)
        if not host.check(f"{APT} update -y"):
            raise ProvisioningError("Failed to update system")

    console.print("[green]✓ Package lists updated[/green]")


def upgrade_system(host: HostConnection) -> None:
    """Upgrade installed packages, repairing dpkg and retrying once on failure."""
    console.print("[cyan]Upgrading system packages...[/cyan]")

    if not host.check(f"{APT} upgrade -y"):
        console.print("[yellow]⚠ Upgrade failed, attempting fixes...[/yellow]")
        repair_dpkg(host)
        if not host.check(f"{APT} upgrade -y"):
            raise ProvisioningError("Failed to upgrade system")

    console.print("[green]✓ System packages upgraded[/green]")


def enable_universe_repo(host: HostConnection) -> None:
    """Enable the universe repository (phpmyadmin lives there)."""
    console.print("[cyan]Enabling universe repository...[/cyan]")
    if not host.check("add-apt-repository universe -y"):
        raise ProvisioningError("Failed to add universe repository")
    console.print("[green]✓ universe repository enabled[/green]")


def preseed_debconf(host: HostConnection, request: ProvisioningRequest) -> None:
    """Answer the mysql-server and phpmyadmin install questions in advance.

    Selections go through stdin so passwords never show up in a process list.
    """
    console.print("[cyan]Preseeding MySQL and phpMyAdmin answers...[/cyan]")

    root_password = request.mysql_root_password
    selections = "\n".join([
        f"mysql-server mysql-server/root_password password {root_password}",
        f"mysql-server mysql-server/root_password_again password {root_password}",
        "phpmyadmin phpmyadmin/dbconfig-install boolean true",
        f"phpmyadmin phpmyadmin/mysql/admin-pass password {root_password}",
        f"phpmyadmin phpmyadmin/mysql/app-pass password {request.phpmyadmin_password}",
        "phpmyadmin phpmyadmin/reconfigure-webserver multiselect apache2",
    ]) + "\n"

    if not host.check("debconf-set-selections", in_stream=io.StringIO(selections)):
        console.print("[yellow]⚠ debconf preseed failed - installers may prompt or use defaults[/yellow]")
        return
    console.print("[green]✓ debconf answers set[/green]")


def is_package_installed(host: HostConnection, package: str) -> bool:
    """Ask the package database whether a package is fully installed."""
    return host.check(
        f"dpkg-query -W -f='${{Status}}' {shlex.quote(package)} 2>/dev/null | grep -q 'install ok installed'"
    )


def install_package(
    host: HostConnection,
    package: str,
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Install one package, retrying per the policy.

    Raises PackageInstallError once every attempt has failed.
    """
    for attempt in range(1, policy.max_attempts + 1):
        console.print(f"[dim]  Installing {package} (attempt {attempt} of {policy.max_attempts})[/dim]")
        if host.check(f"{APT} install -y {shlex.quote(package)}"):
            console.print(f"[green]✓ {package} installed[/green]")
            return

        if attempt < policy.max_attempts:
            delay = policy.delay_for(attempt)
            console.print(f"[yellow]⚠ Installing {package} failed, retrying in {delay:g}s[/yellow]")
            sleep(delay)

    raise PackageInstallError(package, policy.max_attempts)


def install_packages(
    host: HostConnection,
    config: SetupConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> list[str]:
    """Install every configured package that is not already present.

    Returns the names of the packages that were installed by this run.
    """
    installed = []
    for package in config.packages:
        if is_package_installed(host, package):
            console.print(f"[dim]  {package} already installed[/dim]")
            continue

        repair_dpkg(host)
        install_package(host, package, config.retry, sleep=sleep)
        installed.append(package)

    return installed


def setup_packages(
    host: HostConnection,
    config: SetupConfig,
    request: ProvisioningRequest,
    sleep: Callable[[float], None] = time.sleep,
) -> list[str]:
    """Run all package manager steps."""
    console.print("\n[bold blue]Phase 2: Package Installation[/bold blue]\n")

    console.print("[cyan]Fixing interrupted packages...[/cyan]")
    if not repair_dpkg(host):
        raise ProvisioningError("Failed to fix interrupted dpkg")

    clean_package_cache(host)
    update_package_lists(host)
    upgrade_system(host)
    enable_universe_repo(host)
    preseed_debconf(host, request)
    installed = install_packages(host, config, sleep=sleep)

    console.print("\n[bold green]✓ Package installation complete[/bold green]")
    return installed
