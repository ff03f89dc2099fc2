"""
Service version watcher

Polls CMS settings and calls back once when the version of a service
changes, so any number of instances of a service (e.g. renderers behind a
load balancer) restart independently after a bump in the database.

The baseline version stays unknown until a request succeeds. A server
that is down is never mistaken for "no version set".
"""
import logging
import threading
from typing import Callable, Optional

from cromwell.core.config import settings as app_settings
from cromwell.domain.cms import CmsSettings, extract_service_version
from cromwell.manager.client import CmsApiClient

logger = logging.getLogger(__name__)


class ServiceVersionWatcher:
    def __init__(
        self,
        service_name: str,
        on_version_change: Callable[[], None],
        client: Optional[CmsApiClient] = None,
        poll_ms: Optional[int] = None,
    ):
        self.service_name = service_name
        self.on_version_change = on_version_change
        self.client = client or CmsApiClient()
        self.poll_ms = poll_ms

        self.baseline_known = False
        self.current_version: Optional[int] = None
        self._last_settings: Optional[CmsSettings] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval_seconds(self) -> float:
        poll_ms = self.poll_ms
        if poll_ms is None and self._last_settings is not None:
            poll_ms = self._last_settings.watch_poll
        return (poll_ms or app_settings.WATCH_POLL_MS) / 1000

    def _fetch(self) -> Optional[CmsSettings]:
        settings = self.client.get_cms_settings(disable_log=True)
        if settings is not None:
            self._last_settings = settings
        return settings

    def fetch_initial_version(self):
        settings = self._fetch()
        if settings is not None:
            self.current_version = extract_service_version(settings, self.service_name)
            self.baseline_known = True

    def poll_once(self) -> bool:
        """
        Check the remote version once

        Returns:
            True if the version changed and the callback was invoked
        """
        settings = self._fetch()
        if settings is None:
            return False

        remote_version = extract_service_version(settings, self.service_name)

        if self.baseline_known and remote_version and remote_version != self.current_version:
            logger.info(
                f"Service {self.service_name} version changed "
                f"{self.current_version} -> {remote_version}"
            )
            self.current_version = remote_version
            self.on_version_change()
            return True

        if not self.baseline_known:
            self.current_version = remote_version
            self.baseline_known = True

        return False

    def _run(self):
        self.fetch_initial_version()

        while not self._stop_event.wait(self.interval_seconds):
            try:
                if self.poll_once():
                    return
            except Exception as e:
                # Errors are ignored, polling continues
                logger.error(f"Version watcher of {self.service_name} failed: {e}")

    def start(self) -> "ServiceVersionWatcher":
        self._thread = threading.Thread(
            target=self._run,
            name=f"watch-{self.service_name}",
            daemon=True
        )
        self._thread.start()
        return self

    def stop(self):
        self._stop_event.set()


def start_watch_service(service_name: str, on_version_change: Callable[[], None]) -> ServiceVersionWatcher:
    return ServiceVersionWatcher(service_name, on_version_change).start()
