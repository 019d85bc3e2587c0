"""Fatal error types for lamp-setup.

Anything raised from this hierarchy aborts the run with exit code 1.
Non-fatal problems are reported as warnings and never raised.
"""


class ProvisioningError(RuntimeError):
    """A fatal provisioning failure."""


class PrivilegeError(ProvisioningError):
    """The target host connection does not have root rights."""


class InputError(ProvisioningError):
    """Scripted input failed validation."""


class PackageInstallError(ProvisioningError):
    """A package could not be installed within the retry policy."""

    def __init__(self, package: str, attempts: int):
        self.package = package
        self.attempts = attempts
        super().__init__(f"Failed to install {package} after {attempts} attempts")
