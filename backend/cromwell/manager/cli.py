"""
cromwell-manager command line

    cromwell-manager start [--service s|a|r|n] [--port 4016] [--dev] [--init]
    cromwell-manager build
    cromwell-manager close --service r [--with-manager]
    cromwell-manager status
    cromwell-manager shutdown
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from cromwell.core.config import settings
from cromwell.core.logger import setup_logging
from cromwell.manager import base_manager
from cromwell.manager.pid_cache import save_process_pid

logger = logging.getLogger(__name__)


def cmd_start(args) -> int:
    script = "development" if args.dev else "production"

    if args.service:
        success = base_manager.start_service_by_name(
            script, args.service, port=args.port, init=args.init
        )
        definition = base_manager.resolve_service(args.service)
        manager_name = f"{definition.name}_manager" if definition else None
    else:
        success = base_manager.start_system(script, port=args.port, init=args.init)
        manager_name = "server_manager"

    if not success:
        return 1

    if manager_name:
        save_process_pid(manager_name, os.getppid(), os.getpid())

    if args.detach:
        return 0

    try:
        base_manager.wait_for_services()
    except KeyboardInterrupt:
        logger.info("Interrupted, closing services")
        base_manager.shutdown_system()
    return 0


def cmd_build(args) -> int:
    return 0 if base_manager.start_system("build") else 1


def cmd_close(args) -> int:
    if args.with_manager:
        success = base_manager.close_service_and_manager_by_name(args.service)
    else:
        success = base_manager.close_service_by_name(args.service)
    return 0 if success else 1


def cmd_status(args) -> int:
    status = base_manager.get_services_status()
    for title, active in status.items():
        print(f"{title}: {'Active' if active else 'Inactive'}")
    return 0


def cmd_shutdown(args) -> int:
    return 0 if base_manager.shutdown_system() else 1


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="cromwell-manager", description="Cromwell CMS service manager")
    sub = ap.add_subparsers(dest="command", required=True)

    # start
    start = sub.add_parser("start", help="Start all services, or one with --service")
    start.add_argument("--service", "-sv", choices=base_manager.SERVICE_NAMES,
                       help="Service to start (default: server, admin panel and renderer)")
    start.add_argument("--port", "-p", type=int, help="Port of the started service")
    start.add_argument("--dev", action="store_true", help="Development mode")
    start.add_argument("--init", action="store_true", help="Create the database schema first")
    start.add_argument("--detach", "-d", action="store_true", help="Do not wait for the services")
    start.set_defaults(func=cmd_start)

    # build
    build = sub.add_parser("build", help="Build admin panel and renderer")
    build.set_defaults(func=cmd_build)

    # close
    close = sub.add_parser("close", help="Stop one service")
    close.add_argument("--service", "-sv", required=True, choices=base_manager.SERVICE_NAMES)
    close.add_argument("--with-manager", action="store_true", help="Also stop the manager that supervises it")
    close.set_defaults(func=cmd_close)

    # status
    status = sub.add_parser("status", help="Show which services are running")
    status.set_defaults(func=cmd_status)

    # shutdown
    shutdown = sub.add_parser("shutdown", help="Stop every service")
    shutdown.set_defaults(func=cmd_shutdown)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging(logging.DEBUG if settings.is_development else logging.INFO)

    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
