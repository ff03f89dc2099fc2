"""
Unit tests for the service process manager

No process is spawned: Popen, signals and sleeps are mocked.
"""
import signal
from unittest.mock import MagicMock, patch

import pytest

from cromwell.manager import base_manager


@pytest.fixture(autouse=True)
def clean_process_table():
    with patch.dict(base_manager._service_processes, clear=True), \
            patch.dict(base_manager._watchers, clear=True):
        yield


class TestIsRunning:

    @pytest.mark.parametrize("pid", [None, 0])
    def test_empty_pid(self, pid):
        assert base_manager.is_running(pid) is False

    def test_dead_pid(self):
        with patch("cromwell.manager.base_manager.os.kill", side_effect=ProcessLookupError):
            assert base_manager.is_running(4242) is False

    def test_pid_of_other_user(self):
        with patch("cromwell.manager.base_manager.os.kill", side_effect=PermissionError):
            assert base_manager.is_running(4242) is True

    def test_exited_child_is_not_running(self):
        child = MagicMock(pid=4242)
        child.poll.return_value = 0
        base_manager._service_processes["server"] = child

        assert base_manager.is_running(4242) is False


class TestCloseService:

    def run_close(self, running):
        with patch("cromwell.manager.base_manager.get_process_pid", return_value=4242), \
                patch("cromwell.manager.base_manager.is_running", side_effect=running) as is_running, \
                patch("cromwell.manager.base_manager.kill_process") as kill, \
                patch("cromwell.manager.base_manager.time.sleep") as sleep:
            result = base_manager.close_service("renderer")
        return result, kill, sleep, is_running

    def test_not_running_is_success(self):
        result, kill, sleep, _ = self.run_close([False])

        assert result is True
        kill.assert_not_called()

    def test_stops_after_sigterm(self):
        result, kill, sleep, _ = self.run_close([True, True, False, False, False])

        assert result is True
        kill.assert_called_once_with(4242, signal.SIGTERM)
        assert sleep.call_count == 1

    def test_escalates_to_sigkill(self):
        result, kill, sleep, _ = self.run_close([True, True, True, True, False, False])

        assert result is True
        assert [c[0][1] for c in kill.call_args_list] == [signal.SIGTERM, signal.SIGKILL]
        assert sleep.call_count == 2

    def test_reports_unkillable_process(self):
        result, kill, sleep, _ = self.run_close(lambda pid: True)

        assert result is False
        assert kill.call_count == 2
        assert sleep.call_count == 3

    def test_close_service_and_manager(self):
        with patch("cromwell.manager.base_manager.close_service", side_effect=[True, True]) as close:
            assert base_manager.close_service_and_manager("server") is True

        assert [c[0][0] for c in close.call_args_list] == ["server", "server_manager"]


class TestStartService:

    def test_missing_script_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            base_manager.start_service("server", path=str(tmp_path / "missing.py"))

    def test_requires_path_or_command(self):
        with pytest.raises(ValueError):
            base_manager.start_service("server")

    def test_spawns_in_new_session_and_caches_pid(self):
        child = MagicMock(pid=999, stdout=None, stderr=None)

        with patch("cromwell.manager.base_manager.subprocess.Popen", return_value=child) as popen, \
                patch("cromwell.manager.base_manager.save_process_pid") as save_pid:
            started = base_manager.start_service(
                "renderer", cmd="npx cromwella-renderer", args=["--port", "4128"]
            )

        assert started is child
        argv = popen.call_args[0][0]
        assert argv == ["npx", "cromwella-renderer", "--port", "4128"]
        assert popen.call_args.kwargs["start_new_session"] is True
        save_pid.assert_called_once()
        assert save_pid.call_args[0][0] == "renderer"
        assert save_pid.call_args[0][2] == 999
        assert base_manager._service_processes["renderer"] is child

    def test_sync_waits_for_exit(self):
        child = MagicMock(pid=999)

        with patch("cromwell.manager.base_manager.subprocess.Popen", return_value=child) as popen, \
                patch("cromwell.manager.base_manager.save_process_pid"):
            base_manager.start_service("adminPanel_build", cmd=["npx", "cromwella-admin", "build"], sync=True)

        child.wait.assert_called_once()
        assert popen.call_args.kwargs["stdout"] is None

    def test_starts_version_watcher(self):
        child = MagicMock(pid=999, stdout=None, stderr=None)
        on_change = MagicMock()

        with patch("cromwell.manager.base_manager.subprocess.Popen", return_value=child), \
                patch("cromwell.manager.base_manager.save_process_pid"), \
                patch("cromwell.manager.base_manager.settings") as settings, \
                patch("cromwell.manager.base_manager.ServiceVersionWatcher") as watcher_cls:
            settings.USE_WATCH = True
            settings.is_development = False
            base_manager.start_service("renderer", cmd="npx cromwella-renderer",
                                       watch_name="renderer", on_version_change=on_change)

        watcher_cls.assert_called_once_with("renderer", on_change)
        watcher_cls.return_value.start.assert_called_once()


class TestServicesByName:

    @pytest.mark.parametrize("alias,name", [
        ("s", "server"), ("a", "adminPanel"), ("r", "renderer"), ("n", "nginx"), ("renderer", "renderer"),
    ])
    def test_resolve_aliases(self, alias, name):
        assert base_manager.resolve_service(alias).name == name

    def test_invalid_service_name(self):
        assert base_manager.start_service_by_name("production", "database") is False
        assert base_manager.close_service_by_name("x") is False

    def test_port_in_use(self):
        with patch("cromwell.manager.base_manager.is_port_used", return_value=True), \
                patch("cromwell.manager.base_manager.start_service") as start:
            assert base_manager.start_service_by_name("production", "s", port=5000) is False

        start.assert_not_called()

    def test_start_server_with_port(self):
        with patch("cromwell.manager.base_manager.is_port_used", return_value=False), \
                patch("cromwell.manager.base_manager.start_service") as start:
            assert base_manager.start_service_by_name("development", "s", port=5000) is True

        kwargs = start.call_args.kwargs
        assert kwargs["name"] == "server"
        assert kwargs["args"] == ["--port", "5000"]
        assert kwargs["env"] == {"CMS_ENV": "dev"}
        assert kwargs["watch_name"] == "server"
        assert callable(kwargs["on_version_change"])

    def test_port_override_ignored_when_starting_all(self):
        with patch("cromwell.manager.base_manager.is_port_used", return_value=False), \
                patch("cromwell.manager.base_manager.start_service") as start:
            base_manager.start_service_by_name("production", "r", port=5000, start_all=True)

        assert start.call_args.kwargs["args"] == ["--port", str(base_manager.settings.RENDERER_PORT)]

    def test_shutdown_continues_after_error(self):
        with patch("cromwell.manager.base_manager.close_service_and_manager",
                   side_effect=[True, RuntimeError("boom"), True]) as close:
            assert base_manager.shutdown_system() is False

        assert close.call_count == 3

    def test_services_status(self):
        with patch("cromwell.manager.base_manager.is_service_running",
                   side_effect=lambda name: name == "server"):
            status = base_manager.get_services_status()

        assert status == {"API Server": True, "Admin panel": False, "Renderer": False}

    def test_build_skips_server(self):
        with patch("cromwell.manager.base_manager.start_service") as start:
            assert base_manager.build_service("server") is True

        start.assert_not_called()

    def test_build_failure(self):
        with patch("cromwell.manager.base_manager.start_service", return_value=MagicMock(returncode=1)):
            assert base_manager.build_service("a") is False
