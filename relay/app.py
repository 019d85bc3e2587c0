"""Flask application exposing the contact-form endpoint."""

from email.message import EmailMessage
from typing import Protocol

from flask import Blueprint, Flask, current_app, jsonify, request
from rich.console import Console

from relay.config import RelaySettings
from relay.mailer import SmtpTransport, build_message

console = Console(stderr=True)

REQUIRED_FIELDS = ("name", "email", "message")

mail_blueprint = Blueprint("mail", __name__)


class Transport(Protocol):
    def send(self, message: EmailMessage) -> None: ...


@mail_blueprint.route("/api/send-email", methods=["POST"])
def _send_email():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    if not all(body.get(field) for field in REQUIRED_FIELDS):
        return jsonify(error="Missing fields"), 400

    settings = current_app.config["RELAY_SETTINGS"]
    transport = current_app.config["RELAY_TRANSPORT"]
    try:
        message = build_message(settings, str(body["name"]), str(body["email"]), str(body["message"]))
    except ValueError as e:
        console.print(f"[yellow]⚠ Rejected contact message: {e}[/yellow]")
        return jsonify(error="Invalid fields"), 400

    try:
        transport.send(message)
    except Exception as e:
        console.print(f"[red]✗ Error sending mail: {e}[/red]")
        return jsonify(error="Failed to send email"), 500

    console.print(f"[green]✓ Contact message from {body['email']} sent[/green]")
    return jsonify(success=True)


def create_app(settings: RelaySettings | None = None, transport: Transport | None = None) -> Flask:
    """Create the relay app. Settings default to the process environment."""
    if settings is None:
        settings = RelaySettings.from_env()
    if transport is None:
        transport = SmtpTransport(settings)

    app = Flask(__name__)
    app.config["RELAY_SETTINGS"] = settings
    app.config["RELAY_TRANSPORT"] = transport
    app.register_blueprint(mail_blueprint)
    return app
