"""Tests for lampsetup/connection.py with the invoke context mocked out."""

import os
import sys
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lampsetup.config import SetupConfig, TargetConfig
from lampsetup.connection import HEREDOC_MARKER, HostConnection


def result(stdout="", ok=True):
    return MagicMock(stdout=stdout, ok=ok)


class TestHostConnection(unittest.TestCase):
    def setUp(self):
        patcher = patch("lampsetup.connection.Context")
        self.context_class = patcher.start()
        self.addCleanup(patcher.stop)
        self.ctx = self.context_class.return_value

    def test_root_runs_directly(self):
        self.ctx.run.return_value = result("0\n")
        host = HostConnection(SetupConfig())
        self.assertTrue(host.has_admin_rights())
        host.sudo("systemctl restart bind9")
        self.ctx.sudo.assert_not_called()

    def test_non_root_uses_sudo(self):
        self.ctx.run.side_effect = [result("1000\n"), result(ok=True)]
        self.ctx.sudo.return_value = result()
        host = HostConnection(SetupConfig())
        self.assertTrue(host.has_admin_rights())
        host.sudo("systemctl restart bind9")
        self.ctx.sudo.assert_called_once()

    def test_no_rights(self):
        self.ctx.run.side_effect = [result("1000\n"), result(ok=False)]
        self.assertFalse(HostConnection(SetupConfig()).has_admin_rights())

    def test_write_file_heredoc(self):
        self.ctx.run.return_value = result("0")
        host = HostConnection(SetupConfig())
        host.write_file("/etc/resolv.conf", "nameserver 10.0.0.1\n")
        command = self.ctx.run.call_args_list[1].args[0]
        self.assertEqual(
            command,
            f"tee /etc/resolv.conf > /dev/null << '{HEREDOC_MARKER}'\nnameserver 10.0.0.1\n{HEREDOC_MARKER}",
        )
        self.assertEqual(self.ctx.run.call_args_list[2].args[0], "chmod 644 /etc/resolv.conf")

    def test_paths_and_text_are_quoted(self):
        self.ctx.run.return_value = result("0")
        host = HostConnection(SetupConfig())
        host.file_exists("/srv/my site/index.php")
        host.file_contains("/etc/apache2/apache2.conf", "Include it's.conf")
        host.copy_file("/etc/a b", "/etc/a b.backup")
        commands = [call.args[0] for call in self.ctx.run.call_args_list[1:]]
        self.assertEqual(commands, [
            "test -f '/srv/my site/index.php'",
            "grep -qxF 'Include it'\"'\"'s.conf' /etc/apache2/apache2.conf",
            "cp -p '/etc/a b' '/etc/a b.backup'",
        ])

    def test_check_returns_ok(self):
        self.ctx.run.side_effect = [result("0"), result(ok=False)]
        host = HostConnection(SetupConfig())
        self.assertFalse(host.check("named-checkconf"))
        self.assertTrue(self.ctx.run.call_args.kwargs["warn"])

    def test_verbose_shows_output(self):
        self.ctx.run.return_value = result("0")
        host = HostConnection(SetupConfig(), verbose=True)
        host.check("apache2ctl configtest")
        self.assertFalse(self.ctx.run.call_args.kwargs["hide"])

    def test_remote_target_uses_fabric(self):
        config = SetupConfig(target=TargetConfig(local=False, host="203.0.113.5", ssh_key_path="~/.ssh/id_ed25519"))
        with patch("lampsetup.connection.Connection") as connection_class:
            host = HostConnection(config)
            host.conn
            host.close()
        connection_class.return_value.close.assert_called_once()
        kwargs = connection_class.call_args.kwargs
        self.assertEqual(kwargs["host"], "203.0.113.5")
        self.assertEqual(kwargs["user"], "root")
        self.assertTrue(kwargs["connect_kwargs"]["key_filename"].endswith(".ssh/id_ed25519"))
        self.assertEqual(host.description, "root@203.0.113.5")


if __name__ == "__main__":
    unittest.main()
