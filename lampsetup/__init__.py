"""lamp-setup library modules."""

from lampsetup.config import load_config, validate_config, ProvisioningRequest, SetupConfig, RetryPolicy
from lampsetup.connection import HostConnection
from lampsetup.errors import ProvisioningError, PrivilegeError, PackageInstallError, InputError
from lampsetup.prompts import collect_request, require_admin_rights, ScriptedAnswers
from lampsetup.packages import setup_packages
from lampsetup.render import render_configs, setup_configs, RenderedConfigSet
from lampsetup.services import reconcile_services, validate_configuration, set_share_credentials
from lampsetup.handoff import generate_handoff, print_summary

__all__ = [
    "load_config",
    "validate_config",
    "ProvisioningRequest",
    "SetupConfig",
    "RetryPolicy",
    "HostConnection",
    "ProvisioningError",
    "PrivilegeError",
    "PackageInstallError",
    "InputError",
    "collect_request",
    "require_admin_rights",
    "ScriptedAnswers",
    "setup_packages",
    "render_configs",
    "setup_configs",
    "RenderedConfigSet",
    "reconcile_services",
    "validate_configuration",
    "set_share_credentials",
    "generate_handoff",
    "print_summary",
]
