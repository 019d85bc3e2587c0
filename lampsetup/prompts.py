"""Operator input collection for lamp-setup."""

from pathlib import Path
from typing import Callable, Iterator, NamedTuple

import yaml
from rich.console import Console
from rich.prompt import Prompt

from lampsetup.config import ProvisioningRequest, is_valid_ip
from lampsetup.connection import HostConnection
from lampsetup.errors import InputError, PrivilegeError

console = Console()


class PromptField(NamedTuple):
    """One operator prompt: what to ask, what to fall back to, how to validate."""

    name: str
    prompt: str
    default: str | None = None
    validator: Callable[[str], bool] | None = None
    secret: bool = False


# Asked in this order, one prompt per ProvisioningRequest field
FIELDS = [
    PromptField("ip_address", "Enter IP address (e.g., 192.168.1.1)", validator=is_valid_ip),
    PromptField("domain", "Enter domain name (e.g., example.com)"),
    PromptField("mysql_root_password", "Enter password for MySQL root", secret=True),
    PromptField("phpmyadmin_password", "Enter password for phpMyAdmin", secret=True),
    PromptField("samba_username", "Enter username for Samba (e.g., smbuser)"),
    PromptField("samba_password", "Enter password for Samba", secret=True),
]

AskFunc = Callable[[PromptField], str]


def ask_interactive(field: PromptField) -> str:
    """Ask the operator on the terminal."""
    label = field.prompt
    if field.default:
        label += f" [dim]({field.default})[/dim]"
    return Prompt.ask(label, password=field.secret, console=console)


class ScriptedAnswers:
    """Answer prompts from a mapping instead of the terminal.

    Each field maps to one value or a list of values tried in order. When a
    field runs out of values (for example because the last one was invalid)
    an InputError is raised instead of prompting forever.
    """

    def __init__(self, answers: dict):
        self._values: dict[str, Iterator[str]] = {}
        for name, value in answers.items():
            values = value if isinstance(value, list) else [value]
            self._values[name] = iter("" if v is None else str(v) for v in values)

    def __call__(self, field: PromptField) -> str:
        values = self._values.get(field.name)
        if values is None:
            if field.default is not None:
                return ""
            raise InputError(f"No answer provided for {field.name}")
        try:
            return next(values)
        except StopIteration:
            raise InputError(f"No valid answer provided for {field.name}") from None


def load_answers(path: str | Path) -> ScriptedAnswers:
    """Load scripted answers from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Answers file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise InputError(f"Answers file must contain a mapping: {path}")
    return ScriptedAnswers(raw)


def collect_field(field: PromptField, ask: AskFunc) -> str:
    """Ask for one field until it validates."""
    while True:
        value = ask(field)
        if not value and field.default:
            value = field.default
        if field.validator is None or field.validator(value):
            return value
        console.print("[yellow]⚠ Invalid input, please try again[/yellow]")


def collect_request(ask: AskFunc = ask_interactive) -> ProvisioningRequest:
    """Collect every field in order and build a validated request."""
    values = {field.name: collect_field(field, ask) for field in FIELDS}
    return ProvisioningRequest(**values)


def require_admin_rights(host: HostConnection) -> None:
    """Abort before any prompt unless we can act as root on the host."""
    console.print(f"[cyan]Checking privileges on {host.description}...[/cyan]")
    if not host.has_admin_rights():
        raise PrivilegeError("Script must be run with root privileges (use sudo)")
    console.print("[green]✓ Running with root privileges[/green]")
