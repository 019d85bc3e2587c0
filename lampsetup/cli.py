"""Command-line driver for lamp-setup: argument parsing and the phase-by-phase run."""

import argparse
import sys
import time
from datetime import datetime
from typing import Callable

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from lampsetup.config import ProvisioningRequest, SetupConfig, load_config, validate_config
from lampsetup.connection import HostConnection
from lampsetup.errors import ProvisioningError
from lampsetup.handoff import generate_handoff, print_summary
from lampsetup.packages import setup_packages
from lampsetup.prompts import ask_interactive, collect_request, load_answers, require_admin_rights
from lampsetup.render import render_configs, setup_configs
from lampsetup.services import reconcile_services, validate_configuration

console = Console()


def print_banner():
    """Print the lamp-setup banner."""
    console.print(Panel.fit(
        "[bold cyan]lamp-setup[/bold cyan]\n"
        "[dim]bind9 + apache2 + mysql + phpMyAdmin + samba in one pass[/dim]",
        border_style="blue",
    ))


def load_setup_config(config_path: str | None) -> SetupConfig:
    """Load the tool configuration, exiting on errors."""
    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[red]✗ Config error: {e}[/red]")
        sys.exit(1)

    for warning in validate_config(config):
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    return config


def phase1_collect(
    host: HostConnection,
    answers_path: str | None = None,
    check_privileges: bool = True,
) -> ProvisioningRequest:
    """Phase 1: Privilege check & operator input."""
    console.print("\n[bold blue]Phase 1: Input[/bold blue]\n")

    if not host.target.local:
        console.print(f"[cyan]Connecting to {host.description}...[/cyan]")
        if not host.test_connection():
            raise ProvisioningError(f"Could not connect to {host.description}")
        console.print("[green]✓ Connection established[/green]")

    # Must happen before the first prompt
    if check_privileges:
        require_admin_rights(host)

    ask = load_answers(answers_path) if answers_path else ask_interactive
    request = collect_request(ask)
    console.print(f"[green]✓ Input collected for {request.domain} ({request.ip_address})[/green]")
    return request


def run_provisioning(
    host: HostConnection,
    config: SetupConfig,
    request: ProvisioningRequest,
    sleep: Callable[[float], None] = time.sleep,
    now: datetime | None = None,
) -> dict:
    """Run all mutating phases in order."""
    results = {
        "installed": [],
        "rendered": None,
        "warnings": [],
    }

    try:
        # Phase 2: Packages
        results["installed"] = setup_packages(host, config, request, sleep=sleep)

        # Phase 3: Configuration files
        results["rendered"] = setup_configs(host, config, request, now=now)

        # Phase 4: Services
        results["warnings"] += reconcile_services(host, config, request, now=now)

        # Phase 5: Validation
        results["warnings"] += validate_configuration(host, config, request)

    except Exception as e:
        console.print(f"\n[bold red]Error during provisioning: {e}[/bold red]")
        console.print("[yellow]Some steps may have completed. Overwritten files have .backup.* copies.[/yellow]")
        raise

    return results


def dry_run(host: HostConnection, config: SetupConfig, request: ProvisioningRequest) -> None:
    """Render every file and print it without touching the host."""
    console.print("\n[bold yellow]DRY RUN: rendering files only, no changes will be made.[/bold yellow]\n")
    rendered = render_configs(request, config, hostname=host.hostname())
    for item in rendered.files.values():
        console.print(Panel(Text(item.content), title=item.path, border_style="dim"))


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="One-shot provisioning for a DNS, web, database and file-sharing server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to a YAML configuration file (defaults reproduce the standard stack)",
    )
    parser.add_argument(
        "--answers",
        "-a",
        help="Path to a YAML file answering the prompts, for unattended runs",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Collect input and print the rendered files without making changes",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show output of the commands being run",
    )
    parser.add_argument(
        "--output-dir",
        "-o",
        default=".",
        help="Directory for the handoff document (default: current directory)",
    )

    args = parser.parse_args()

    print_banner()
    start_time = datetime.now()

    config = load_setup_config(args.config)
    host = HostConnection(config, verbose=args.verbose)

    try:
        request = phase1_collect(host, args.answers, check_privileges=not args.dry_run)

        if args.dry_run:
            dry_run(host, config, request)
            sys.exit(0)

        results = run_provisioning(host, config, request)

        print_summary(request, config, results["warnings"])

        # The host is provisioned at this point, so a failed write only warns
        try:
            handoff_path = generate_handoff(
                request,
                config,
                results["rendered"],
                results["warnings"],
                args.output_dir,
            )
        except OSError as e:
            console.print(f"[yellow]⚠ Could not write handoff document: {e}[/yellow]")
            handoff_path = None

        elapsed = datetime.now() - start_time
        console.print(f"[dim]Time elapsed: {elapsed.total_seconds():.0f} seconds[/dim]")
        if handoff_path is not None:
            console.print(f"[dim]Handoff document: {handoff_path}[/dim]")

    except Exception as e:
        console.print(f"\n[bold red]ERROR: {e}[/bold red]")
        sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(1)

    finally:
        host.close()
