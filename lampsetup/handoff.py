"""Final summary and handoff document generation for lamp-setup."""

from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from lampsetup.config import ProvisioningRequest, SetupConfig
from lampsetup.render import RenderedConfigSet, template_environment, zone_serial

console = Console()


def phpmyadmin_url(request: ProvisioningRequest) -> str:
    return f"http://{request.ip_address}/phpmyadmin"


def share_address(request: ProvisioningRequest, config: SetupConfig) -> str:
    return f"//{request.ip_address}/{config.share.name}"


def print_summary(
    request: ProvisioningRequest,
    config: SetupConfig,
    warnings: list[str],
) -> None:
    """Print the human-readable completion summary."""
    status = (
        "[bold green]Configuration Completed[/bold green]"
        if not warnings
        else f"[bold yellow]Configuration Completed with {len(warnings)} warning(s)[/bold yellow]"
    )
    console.print("\n" + "=" * 60)
    console.print(Panel.fit(
        f"{status}\n\n"
        f"Domain: {request.domain}\n"
        f"IP Address: {request.ip_address}\n"
        f"phpMyAdmin URL: {phpmyadmin_url(request)}\n"
        f"Samba share available at: {share_address(request, config)}\n"
        f"Samba Username: {request.samba_username}",
        border_style="green" if not warnings else "yellow",
    ))


def generate_handoff(
    request: ProvisioningRequest,
    config: SetupConfig,
    rendered: RenderedConfigSet,
    warnings: list[str],
    output_dir: str = ".",
    now: datetime | None = None,
) -> Path:
    """Generate the handoff document for the provisioned host.

    Args:
        request: The operator's answers
        config: The setup configuration
        rendered: The configuration files written this run
        warnings: Warnings collected during the run
        output_dir: Directory to write the handoff document
        now: Timestamp for the document (defaults to the current time)

    Returns:
        Path to the generated document
    """
    if now is None:
        now = datetime.now()

    console.print("[cyan]Generating handoff document...[/cyan]")

    template = template_environment().get_template("handoff.md.j2")
    content = template.render(
        date=now.strftime("%Y-%m-%d"),
        domain=request.domain,
        ip=request.ip_address,
        reverse_zone=request.reverse_zone,
        samba_username=request.samba_username,
        phpmyadmin_url=phpmyadmin_url(request),
        share_address=share_address(request, config),
        serial=zone_serial(now.date(), config.dns.serial_sequence),
        aliases=config.dns.aliases,
        fallback_nameserver=config.dns.fallback_nameserver,
        files=list(rendered.files.values()),
        web_root=config.web.root.rstrip("/"),
        services=config.services,
        warnings=warnings,
    )

    hostname = request.domain.replace(".", "-")
    output_path = Path(output_dir) / f"handoff-{hostname}-{now:%Y%m%d}.md"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content)

    console.print(f"[green]✓ Handoff document saved to: {output_path}[/green]")
    return output_path
