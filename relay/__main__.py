"""Run the contact-form mail relay."""

from rich.console import Console

from relay.app import create_app
from relay.config import RelaySettings

console = Console()


def main():
    settings = RelaySettings.from_env()
    app = create_app(settings)
    console.print(f"[green]Contact server listening on {settings.port}[/green]")
    app.run(host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
