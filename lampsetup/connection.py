"""Host connection handling for lamp-setup.

Every step talks to the machine through a HostConnection, so the whole
pipeline can run against the local host, a remote host over SSH, or a fake
in tests.
"""

import shlex
from pathlib import Path

from fabric import Connection
from invoke import Context
from invoke.runners import Result
from rich.console import Console

from lampsetup.config import SetupConfig

console = Console()

HEREDOC_MARKER = "LAMPSETUP_EOF"


def _heredoc_body(content: str) -> str:
    # The heredoc itself terminates the last line
    return content[:-1] if content.endswith("\n") else content


class HostConnection:
    """Runs commands on the machine being provisioned."""

    def __init__(self, config: SetupConfig, verbose: bool = False):
        self.config = config
        self.target = config.target
        self.verbose = verbose
        self._connection: Context | None = None
        self._is_root: bool | None = None

    def _get_connect_kwargs(self) -> dict:
        """Get connection kwargs based on the configured credentials."""
        if self.target.ssh_password:
            return {"password": self.target.ssh_password}
        if self.target.ssh_key_path:
            key_path = Path(self.target.ssh_key_path).expanduser()
            return {"key_filename": str(key_path)}
        return {}

    @property
    def conn(self) -> Context:
        """Get or create the underlying invoke context or fabric connection."""
        if self._connection is None:
            if self.target.local:
                self._connection = Context()
            else:
                self._connection = Connection(
                    host=self.target.host,
                    user=self.target.ssh_user,
                    port=self.target.ssh_port,
                    connect_kwargs=self._get_connect_kwargs(),
                )
        return self._connection

    @property
    def description(self) -> str:
        if self.target.local:
            return "localhost"
        return f"{self.target.ssh_user}@{self.target.host}"

    @property
    def is_root(self) -> bool:
        """Whether commands already run as uid 0."""
        if self._is_root is None:
            result = self.conn.run("id -u", hide=True, warn=True)
            self._is_root = result.ok and result.stdout.strip() == "0"
        return self._is_root

    def has_admin_rights(self) -> bool:
        """Check that we can run commands as root, directly or via passwordless sudo."""
        if self.is_root:
            return True
        result = self.conn.run("sudo -n true", hide=True, warn=True)
        return result.ok

    def test_connection(self) -> bool:
        """Test if we can reach the host."""
        try:
            result = self.conn.run("echo 'connection test'", hide=True)
            return result.ok
        except Exception as e:
            console.print(f"[red]Connection failed: {e}[/red]")
            return False

    def _hide(self, hide: bool) -> bool:
        return hide and not self.verbose

    def _sudo_result(self, command: str, hide: bool = False, warn: bool = False, **kwargs) -> Result:
        # If we're root, just run directly
        if self.is_root:
            return self.conn.run(command, hide=self._hide(hide), warn=warn, **kwargs)
        return self.conn.sudo(command, hide=self._hide(hide), warn=warn, **kwargs)

    def run(self, command: str, hide: bool = False, warn: bool = False, **kwargs) -> str:
        """Run a command on the host and return stdout."""
        result = self.conn.run(command, hide=self._hide(hide), warn=warn, **kwargs)
        return result.stdout.strip()

    def sudo(self, command: str, hide: bool = False, warn: bool = False, **kwargs) -> str:
        """Run a command as root on the host and return stdout."""
        return self._sudo_result(command, hide=hide, warn=warn, **kwargs).stdout.strip()

    def check(self, command: str, **kwargs) -> bool:
        """Run a command as root and report whether it succeeded."""
        return self._sudo_result(command, hide=True, warn=True, **kwargs).ok

    def file_exists(self, path: str) -> bool:
        """Check if a file exists on the host."""
        return self.check(f"test -f {shlex.quote(path)}")

    def dir_exists(self, path: str) -> bool:
        """Check if a directory exists on the host."""
        return self.check(f"test -d {shlex.quote(path)}")

    def read_file(self, path: str) -> str:
        """Return the content of a file on the host."""
        return self._sudo_result(f"cat {shlex.quote(path)}", hide=True).stdout

    def file_contains(self, path: str, text: str) -> bool:
        """Check if a file contains a fixed-string line."""
        return self.check(f"grep -qxF {shlex.quote(text)} {shlex.quote(path)}")

    def write_file(self, path: str, content: str, mode: str = "644") -> None:
        """Write content to a file on the host."""
        # Use tee with heredoc - tee runs under sudo so redirect works
        self.sudo(
            f"tee {shlex.quote(path)} > /dev/null << '{HEREDOC_MARKER}'\n{_heredoc_body(content)}\n{HEREDOC_MARKER}",
            hide=True,
        )
        self.sudo(f"chmod {shlex.quote(mode)} {shlex.quote(path)}", hide=True)

    def append_file(self, path: str, content: str) -> None:
        """Append content to a file on the host."""
        self.sudo(
            f"tee -a {shlex.quote(path)} > /dev/null << '{HEREDOC_MARKER}'\n{_heredoc_body(content)}\n{HEREDOC_MARKER}",
            hide=True,
        )

    def copy_file(self, source: str, destination: str) -> bool:
        """Copy a file on the host, preserving mode and timestamps."""
        return self.check(f"cp -p {shlex.quote(source)} {shlex.quote(destination)}")

    def hostname(self) -> str:
        """Get the short host name of the target."""
        return self.run("hostname", hide=True)

    def close(self) -> None:
        """Close the SSH connection if one was opened."""
        if self._connection is not None and not self.target.local:
            self._connection.close()
