"""End-to-end tests of the provisioning pipeline against a fake host."""

import os
import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lampsetup.cli import main, phase1_collect, run_provisioning
from lampsetup.config import ProvisioningRequest, SetupConfig
from lampsetup.errors import PackageInstallError, PrivilegeError
from lampsetup.handoff import generate_handoff
from tests.fakes import FakeHost

NOW = datetime(2026, 10, 17, 9, 30, 5)


def make_request():
    return ProvisioningRequest(
        ip_address="192.168.1.10",
        domain="example.com",
        mysql_root_password="rootpw",
        phpmyadmin_password="pmapw",
        samba_username="smbuser",
        samba_password="smbpw",
    )


class TestRunProvisioning(unittest.TestCase):
    def setUp(self):
        self.sleeps = []

    def test_clean_run(self):
        host = FakeHost()
        results = run_provisioning(host, SetupConfig(), make_request(), sleep=self.sleeps.append, now=NOW)

        self.assertEqual(results["warnings"], [])
        self.assertEqual(
            results["installed"],
            ["bind9", "apache2", "mysql-server", "apache2-utils", "phpmyadmin", "samba"],
        )
        self.assertIn("10      IN      PTR     ns.example.com.", host.files["/etc/bind/smk.ip"])
        self.assertIn('zone "1.168.192.in-addr.arpa"', host.files["/etc/bind/named.conf.default-zones"])
        self.assertIn("/var/www/index.php", host.files)

    def test_pipeline_order(self):
        host = FakeHost()
        run_provisioning(host, SetupConfig(), make_request(), sleep=self.sleeps.append, now=NOW)

        def first(prefix):
            return next(i for i, c in enumerate(host.commands) if c.startswith(prefix))

        self.assertLess(first("dpkg --configure -a"), first("DEBIAN_FRONTEND=noninteractive apt-get install"))
        self.assertLess(first("DEBIAN_FRONTEND=noninteractive apt-get install"), first("write /etc/resolv.conf"))
        self.assertLess(first("write /etc/samba/smb.conf"), first("systemctl restart"))
        self.assertLess(first("systemctl restart"), first("apache2ctl configtest"))

    def test_install_exhaustion_halts_before_rendering(self):
        host = FakeHost(failures={"DEBIAN_FRONTEND=noninteractive apt-get install -y phpmyadmin": None})
        with self.assertRaises(PackageInstallError):
            run_provisioning(host, SetupConfig(), make_request(), sleep=self.sleeps.append, now=NOW)

        self.assertEqual(self.sleeps, [5.0, 5.0])
        self.assertFalse(any(c.startswith("write ") for c in host.commands))
        self.assertNotIn("/etc/bind/smk.db", host.files)
        self.assertEqual(host.ran("systemctl"), [])

    def test_service_failure_does_not_abort(self):
        host = FakeHost(failures={"systemctl restart bind9": None, "named-checkconf": None})
        results = run_provisioning(host, SetupConfig(), make_request(), sleep=self.sleeps.append, now=NOW)

        self.assertEqual(results["warnings"], ["Failed to restart bind9", "BIND config test failed"])
        self.assertIn("systemctl enable smbd", host.commands)

    def test_rerun_backs_up_previous_output(self):
        host = FakeHost()
        run_provisioning(host, SetupConfig(), make_request(), sleep=self.sleeps.append, now=NOW)
        first_zone = host.files["/etc/bind/smk.db"]

        later = datetime(2026, 10, 17, 18, 0, 0)
        run_provisioning(host, SetupConfig(), make_request(), sleep=self.sleeps.append, now=later)

        self.assertEqual(host.files["/etc/bind/smk.db.backup.20261017_180000"], first_zone)
        # Same-day serial does not increment
        self.assertEqual(host.files["/etc/bind/smk.db"], first_zone)
        # Packages are already there on the second run
        self.assertEqual(len(host.ran("DEBIAN_FRONTEND=noninteractive apt-get install")), 6)


class TestPhase1(unittest.TestCase):
    def test_privilege_check_before_any_prompt(self):
        host = FakeHost(admin=False)
        # The answers file does not exist; loading it would raise FileNotFoundError
        with self.assertRaises(PrivilegeError):
            phase1_collect(host, "/nonexistent/answers.yaml")

    def test_scripted_collection(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "answers.yaml")
            with open(path, "w") as f:
                f.write(
                    "ip_address: 192.168.1.10\n"
                    "domain: example.com\n"
                    "mysql_root_password: rootpw\n"
                    "phpmyadmin_password: pmapw\n"
                    "samba_username: smbuser\n"
                    "samba_password: smbpw\n"
                )
            request = phase1_collect(FakeHost(), path)
        self.assertEqual(request, make_request())


ANSWERS = (
    "ip_address: 192.168.1.10\n"
    "domain: example.com\n"
    "mysql_root_password: rootpw\n"
    "phpmyadmin_password: pmapw\n"
    "samba_username: smbuser\n"
    "samba_password: smbpw\n"
)


class TestCommandLine(unittest.TestCase):
    """Exit codes of the lamp-setup command against a fake host."""

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmpdir = Path(tmp.name)
        self.answers = self.tmpdir / "answers.yaml"
        self.answers.write_text(ANSWERS)
        self.config = self.tmpdir / "config.yaml"
        self.config.write_text("retry:\n  delay: 0\n")
        self.output_dir = self.tmpdir / "out"

    def run_cli(self, host, *extra):
        """Run main() and return its exit code."""
        argv = [
            "lamp-setup",
            "--config", str(self.config),
            "--answers", str(self.answers),
            "--output-dir", str(self.output_dir),
            *extra,
        ]
        with patch.object(sys, "argv", argv), patch("lampsetup.cli.HostConnection", return_value=host):
            try:
                main()
            except SystemExit as e:
                return e.code
        return 0

    def test_missing_privileges_exit_1(self):
        host = FakeHost(admin=False)
        self.assertEqual(self.run_cli(host), 1)
        self.assertEqual(host.commands, [])
        self.assertTrue(host.closed)

    def test_install_exhaustion_exit_1(self):
        host = FakeHost(failures={"DEBIAN_FRONTEND=noninteractive apt-get install -y phpmyadmin": None})
        self.assertEqual(self.run_cli(host), 1)
        self.assertEqual(len(host.ran("DEBIAN_FRONTEND=noninteractive apt-get install -y phpmyadmin")), 3)
        self.assertFalse(any(c.startswith("write ") for c in host.commands))
        self.assertFalse(self.output_dir.exists())

    def test_service_warnings_exit_0(self):
        host = FakeHost(failures={"systemctl restart bind9": None})
        self.assertEqual(self.run_cli(host), 0)
        self.assertIn("systemctl restart smbd", host.commands)
        handoffs = list(self.output_dir.glob("handoff-example-com-*.md"))
        self.assertEqual(len(handoffs), 1)
        self.assertIn("Failed to restart bind9", handoffs[0].read_text())

    def test_unwritable_handoff_exit_0(self):
        self.output_dir.write_text("a regular file, not a directory")
        host = FakeHost()
        self.assertEqual(self.run_cli(host), 0)
        self.assertIn("/etc/bind/smk.db", host.files)

    def test_dry_run_leaves_host_untouched(self):
        host = FakeHost(admin=False)
        self.assertEqual(self.run_cli(host, "--dry-run"), 0)
        self.assertEqual(host.commands, [])
        self.assertEqual(host.files, {})
        self.assertEqual(host.installed, set())
        self.assertFalse(self.output_dir.exists())


class TestHandoff(unittest.TestCase):
    def test_handoff_document(self):
        host = FakeHost()
        request = make_request()
        config = SetupConfig()
        results = run_provisioning(host, config, request, sleep=lambda s: None, now=NOW)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = generate_handoff(request, config, results["rendered"], ["Failed to restart smbd"], tmpdir, now=NOW)
            content = path.read_text()

        self.assertEqual(path.name, "handoff-example-com-20261017.md")
        self.assertIn("http://192.168.1.10/phpmyadmin", content)
        self.assertIn("//192.168.1.10/www", content)
        self.assertIn("`smbuser`", content)
        self.assertIn("`2026101701`", content)
        self.assertIn("- `/etc/bind/smk.db`", content)
        self.assertIn("- Failed to restart smbd", content)
        for secret in ("rootpw", "pmapw", "smbpw"):
            self.assertNotIn(secret, content)


if __name__ == "__main__":
    unittest.main()
