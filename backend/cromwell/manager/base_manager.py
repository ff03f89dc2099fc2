"""
Process manager of CMS services

Starts, stops and reports the API server, admin panel, renderer and nginx
proxy as child processes. Each child runs in its own session so closing a
service also stops whatever it spawned. PIDs are cached on disk (see
pid_cache) so another manager invocation can close them later.

Stopping escalates: SIGTERM, up to two 1 s waits, SIGKILL, one more 1 s
wait. A process still alive after that is reported, never waited on.
"""
import atexit
import logging
import os
import shlex
import signal
import socket
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from cromwell import __version__
from cromwell.core.config import settings
from cromwell.manager.pid_cache import get_process_pid, save_process_pid
from cromwell.manager.watcher import ServiceVersionWatcher

logger = logging.getLogger(__name__)

# Seconds between liveness checks while closing a service
KILL_WAIT_SECONDS = 1

SCRIPT_NAMES = ("production", "development", "build")


@dataclass
class ServiceDefinition:
    name: str
    title: str
    aliases: tuple
    command: Callable[[], str]
    port: Callable[[], Optional[int]]
    watch_name: Optional[str] = None
    build_args: Optional[List[str]] = None


SERVICES: Dict[str, ServiceDefinition] = {
    "server": ServiceDefinition(
        name="server",
        title="API Server",
        aliases=("s", "server"),
        command=lambda: settings.SERVER_COMMAND,
        port=lambda: settings.API_PORT,
        watch_name="server",
    ),
    "adminPanel": ServiceDefinition(
        name="adminPanel",
        title="Admin panel",
        aliases=("a", "adminPanel"),
        command=lambda: settings.ADMIN_PANEL_COMMAND,
        port=lambda: settings.ADMIN_PANEL_PORT,
        watch_name="admin",
        build_args=["build"],
    ),
    "renderer": ServiceDefinition(
        name="renderer",
        title="Renderer",
        aliases=("r", "renderer"),
        command=lambda: settings.RENDERER_COMMAND,
        port=lambda: settings.RENDERER_PORT,
        watch_name="renderer",
        build_args=["build"],
    ),
    "nginx": ServiceDefinition(
        name="nginx",
        title="Nginx",
        aliases=("n", "nginx"),
        command=lambda: settings.NGINX_COMMAND,
        port=lambda: None,
    ),
}

SERVICE_NAMES = [alias for service in SERVICES.values() for alias in service.aliases]

# Children started by this manager process
_service_processes: Dict[str, subprocess.Popen] = {}
_watchers: Dict[str, ServiceVersionWatcher] = {}


def resolve_service(service_name: Optional[str]) -> Optional[ServiceDefinition]:
    for service in SERVICES.values():
        if service_name in service.aliases:
            return service
    return None


# ============================================================================
# Process helpers
# ============================================================================

def is_running(pid: Optional[int]) -> bool:
    """Whether a process is alive (exited children are reaped, not reported alive)"""
    if not pid:
        return False

    for proc in _service_processes.values():
        if proc.pid == pid:
            return proc.poll() is None

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


def kill_process(pid: int, sig: int):
    """Signal a process and its process group"""
    try:
        os.killpg(os.getpgid(pid), sig)
    except (ProcessLookupError, PermissionError):
        try:
            os.kill(pid, sig)
        except OSError as e:
            logger.warning(f"Failed to send signal {sig} to pid {pid}: {e}")


def _pipe_to_log(stream, level: int, name: str):
    def _drain():
        for line in stream:
            line = line.rstrip("\r\n")
            if line:
                logger.log(level, f"[{name}] {line}")

    thread = threading.Thread(target=_drain, name=f"log-{name}", daemon=True)
    thread.start()
    return thread


def is_port_used(port: int, host: str = "127.0.0.1") -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(1)
        return sock.connect_ex((host, int(port))) == 0


# ============================================================================
# Single service
# ============================================================================

def close_service(name: str) -> bool:
    """
    Stop a service by name

    Returns:
        True if the service is not running anymore
    """
    proc = _service_processes.get(name)
    pid = proc.pid if proc else get_process_pid(name)

    if not pid or not is_running(pid):
        _service_processes.pop(name, None)
        return True

    watcher = _watchers.pop(name, None)
    if watcher:
        watcher.stop()

    kill_process(pid, signal.SIGTERM)
    if is_running(pid):
        time.sleep(KILL_WAIT_SECONDS)
    if is_running(pid):
        time.sleep(KILL_WAIT_SECONDS)

    if is_running(pid):
        kill_process(pid, signal.SIGKILL)
        if is_running(pid):
            time.sleep(KILL_WAIT_SECONDS)

    if is_running(pid):
        logger.error(f"Failed to close service {name} by pid. Service is still active! pid {pid}")
        return False

    _service_processes.pop(name, None)
    return True


def close_service_and_manager(name: str) -> bool:
    success_service = close_service(name)
    success_manager = close_service(f"{name}_manager")
    return success_service and success_manager


def start_service(
    name: str,
    path: Optional[str] = None,
    cmd: Optional[Union[str, List[str]]] = None,
    args: Optional[List[str]] = None,
    cwd: Optional[str] = None,
    sync: bool = False,
    command: Optional[str] = None,
    watch_name: Optional[str] = None,
    on_version_change: Optional[Callable[[], None]] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.Popen:
    """
    Start a service as a child process

    Args:
        name: Cache key of the service
        path: Python script to run (alternative to cmd)
        cmd: Command line to run
        args: Extra arguments
        cwd: Working directory
        sync: Inherit the terminal and wait for the process to exit
        command: Run mode; "build" also logs stdout
        watch_name: Service version to watch in CMS settings
        on_version_change: Called once when the watched version changes

    Raises:
        FileNotFoundError if path does not exist
    """
    if path is not None:
        if not Path(path).exists():
            logger.error(f"Could not find startup script at: {path}")
            raise FileNotFoundError(path)
        argv = [sys.executable, path]
    elif cmd is not None:
        argv = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
    else:
        raise ValueError("start_service needs a script path or a command")
    argv += list(args or [])

    log_stdout = settings.is_development or command == "build"
    child_env = {**os.environ, **(env or {})}

    child = subprocess.Popen(
        argv,
        cwd=cwd or os.getcwd(),
        env=child_env,
        stdout=None if sync else (subprocess.PIPE if log_stdout else subprocess.DEVNULL),
        stderr=None if sync else subprocess.PIPE,
        text=True,
        start_new_session=True,
    )
    save_process_pid(name, os.getpid(), child.pid)
    _service_processes[name] = child
    logger.debug(f"Started {name} (pid {child.pid}): {' '.join(argv)}")

    if sync:
        child.wait()
        return child

    if child.stdout is not None:
        _pipe_to_log(child.stdout, logging.INFO, name)
    if child.stderr is not None:
        _pipe_to_log(child.stderr, logging.ERROR, name)

    if watch_name and on_version_change and settings.USE_WATCH:
        _watchers[name] = ServiceVersionWatcher(watch_name, on_version_change).start()

    return child


def is_service_running(name: str) -> bool:
    proc = _service_processes.get(name)
    return is_running(proc.pid if proc else get_process_pid(name))


# ============================================================================
# Services by name
# ============================================================================

def _warn_invalid_service(service_name: Optional[str]):
    logger.warning(f"Invalid service name {service_name}. Available names are: {', '.join(SERVICE_NAMES)}")


def start_service_by_name(
    script: str = "production",
    service: Optional[str] = None,
    port: Optional[int] = None,
    init: bool = False,
    start_all: bool = False,
) -> bool:
    """
    Start one service

    Args:
        script: production | development | build
        service: Service name or alias (s, a, r, n)
        port: Port override (ignored when starting all services)
        init: Create the database schema before starting the API server
        start_all: Part of start_system (no per-service banner)
    """
    definition = resolve_service(service)
    if definition is None:
        _warn_invalid_service(service)
        return False

    is_development = script == "development"
    service_port = (port if not start_all else None) or definition.port()

    if service_port and is_port_used(service_port):
        logger.error(f"{definition.title}: port {service_port} is already in use")
        return False

    if definition.name == "server" and init:
        from cromwell.core.database import init_db
        init_db()

    args = ["--port", str(service_port)] if service_port else []
    env = {"CMS_ENV": "dev" if is_development else "prod"}

    def restart():
        logger.info(f"Restarting {definition.title} after a version change")
        close_service(definition.name)
        _start()

    def _start():
        start_service(
            name=definition.name,
            cmd=definition.command(),
            args=args,
            command="dev" if is_development else "prod",
            watch_name=definition.watch_name,
            on_version_change=restart if definition.watch_name else None,
            env=env,
        )

    _start()

    if not start_all:
        if service_port:
            logger.info(f"{definition.title} has started at http://localhost:{service_port}")
        else:
            logger.info(f"{definition.title} has started")
    return True


def build_service(service: str) -> bool:
    definition = resolve_service(service)
    if definition is None:
        _warn_invalid_service(service)
        return False

    if not definition.build_args:
        logger.info(f"{definition.title}: nothing to build")
        return True

    child = start_service(
        name=f"{definition.name}_build",
        cmd=definition.command(),
        args=definition.build_args,
        sync=True,
        command="build",
    )
    if child.returncode:
        logger.error(f"{definition.title} build failed with exit code {child.returncode}")
        return False
    return True


def close_service_by_name(service: str) -> bool:
    definition = resolve_service(service)
    if definition is None:
        _warn_invalid_service(service)
        return False
    return close_service(definition.name)


def close_service_and_manager_by_name(service: str) -> bool:
    definition = resolve_service(service)
    if definition is None:
        _warn_invalid_service(service)
        return False
    return close_service_and_manager(definition.name)


def shutdown_system() -> bool:
    success = True
    for name in ("adminPanel", "renderer", "server"):
        try:
            success = close_service_and_manager(name) and success
        except Exception as e:
            logger.error(f"Failed to close {name}: {e}")
            success = False
    return success


def start_system(script: str = "production", port: Optional[int] = None, init: bool = False) -> bool:
    is_development = script == "development"

    print(
        "Starting Cromwell CMS...\n\n"
        f"● Start time:....{datetime.now().isoformat()}\n"
        f"● Environment:...{'development' if is_development or settings.is_development else 'production'}\n"
        f"● CMS version:...{__version__}\n"
    )

    if script == "build":
        return all([build_service("server"), build_service("adminPanel"), build_service("renderer")])

    server_success = start_service_by_name(script, "server", port=port, init=init, start_all=True)
    admin_success = start_service_by_name(script, "adminPanel", start_all=True)
    renderer_success = start_service_by_name(script, "renderer", start_all=True)

    if server_success and admin_success and renderer_success:
        print(
            "\n✔ CMS is running.\n\n"
            "To see frontend open:\n"
            f"http://localhost:{settings.API_PORT}\n\n"
            "To see admin panel open:\n"
            f"http://localhost:{settings.API_PORT}/admin\n"
        )
        return True
    return False


def get_services_status() -> Dict[str, bool]:
    status = {
        definition.title: is_service_running(definition.name)
        for definition in SERVICES.values()
        if definition.name != "nginx"
    }

    lines = [f"  - {title}:{'.' * (20 - len(title))}{'Active' if active else 'Inactive'}" for title, active in status.items()]
    logger.info("CMS services status:\n" + "\n".join(lines))
    return status


def wait_for_services():
    """Block while any started service is alive"""
    while any(proc.poll() is None for proc in _service_processes.values()):
        time.sleep(KILL_WAIT_SECONDS)


@atexit.register
def _cleanup_children():
    for name, proc in list(_service_processes.items()):
        if proc.poll() is None:
            try:
                kill_process(proc.pid, signal.SIGTERM)
            except OSError as e:
                logger.error(f"Failed to stop {name} on exit: {e}")
