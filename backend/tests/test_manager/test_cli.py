"""
Unit tests for the cromwell-manager command line
"""
from unittest.mock import patch

import pytest

from cromwell.manager import cli


class TestParser:

    def test_start_defaults(self):
        args = cli.build_parser().parse_args(["start"])

        assert args.func is cli.cmd_start
        assert args.service is None
        assert args.dev is False
        assert args.init is False

    def test_start_single_service(self):
        args = cli.build_parser().parse_args(["start", "--service", "r", "--port", "4200", "--dev"])

        assert args.service == "r"
        assert args.port == 4200
        assert args.dev is True

    def test_unknown_service_is_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["close", "--service", "database"])

    def test_close_requires_service(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["close"])

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestCommands:

    def test_start_service_detached(self):
        with patch("cromwell.manager.cli.base_manager.start_service_by_name", return_value=True) as start, \
                patch("cromwell.manager.cli.save_process_pid") as save_pid, \
                patch("cromwell.manager.cli.setup_logging"):
            assert cli.main(["start", "--service", "a", "--detach"]) == 0

        start.assert_called_once_with("production", "a", port=None, init=False)
        assert save_pid.call_args[0][0] == "adminPanel_manager"

    def test_start_failure_exit_code(self):
        with patch("cromwell.manager.cli.base_manager.start_system", return_value=False), \
                patch("cromwell.manager.cli.setup_logging"):
            assert cli.main(["start", "--dev"]) == 1

    def test_close_with_manager(self):
        with patch("cromwell.manager.cli.base_manager.close_service_and_manager_by_name",
                   return_value=True) as close, \
                patch("cromwell.manager.cli.setup_logging"):
            assert cli.main(["close", "--service", "s", "--with-manager"]) == 0

        close.assert_called_once_with("s")

    def test_status_prints_services(self, capsys):
        with patch("cromwell.manager.cli.base_manager.get_services_status",
                   return_value={"API Server": True, "Renderer": False}), \
                patch("cromwell.manager.cli.setup_logging"):
            assert cli.main(["status"]) == 0

        out = capsys.readouterr().out
        assert "API Server: Active" in out
        assert "Renderer: Inactive" in out

    def test_build(self):
        with patch("cromwell.manager.cli.base_manager.start_system", return_value=True) as start, \
                patch("cromwell.manager.cli.setup_logging"):
            assert cli.main(["build"]) == 0

        start.assert_called_once_with("build")
