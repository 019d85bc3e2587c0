"""Environment-driven settings for the mail relay."""

import os
from typing import Mapping

from pydantic import BaseModel


def _int(value: str | None, default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


class RelaySettings(BaseModel):
    """SMTP transport and addressing for the relay."""

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_secure: bool = False  # Implicit TLS; otherwise STARTTLS when offered
    smtp_user: str | None = None
    smtp_pass: str | None = None
    from_email: str | None = None
    to_email: str | None = None
    subject_prefix: str = "Portfolio Contact"
    port: int = 5000

    @property
    def sender(self) -> str | None:
        return self.from_email or self.smtp_user

    @property
    def recipient(self) -> str | None:
        return self.to_email or self.sender

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RelaySettings":
        """Build settings from SMTP_* and related environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            smtp_host=env.get("SMTP_HOST") or "localhost",
            smtp_port=_int(env.get("SMTP_PORT"), 587),
            smtp_secure=env.get("SMTP_SECURE") == "true",
            smtp_user=env.get("SMTP_USER") or None,
            smtp_pass=env.get("SMTP_PASS") or None,
            from_email=env.get("FROM_EMAIL") or None,
            to_email=env.get("TO_EMAIL") or None,
            subject_prefix=env.get("SUBJECT_PREFIX") or "Portfolio Contact",
            port=_int(env.get("PORT"), 5000),
        )
