"""
Plugin Repository - per-plugin settings documents
"""
import json
import logging
from typing import Any, Dict, Optional

from cromwell.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PluginRepository(BaseRepository):
    table = "plugins"
    columns = ("name", "settings", "is_installed")
    server_defaults = ("is_installed",)
    has_slug = False
    timestamps = False

    def get_plugin_settings(self, name: str) -> Optional[Dict[str, Any]]:
        """Settings of an installed plugin, or None if unknown"""
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT settings FROM plugins WHERE name = %s",
                (name,)
            )
            row = cursor.fetchone()

        if not row:
            return None

        settings = row['settings']
        if isinstance(settings, str):
            settings = json.loads(settings)
        return settings or {}

    def set_plugin_settings(self, name: str, settings: Dict[str, Any]) -> Dict[str, Any]:
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO plugins (name, settings, is_installed)
                VALUES (%s, %s, true)
                ON CONFLICT (name) DO UPDATE SET settings = EXCLUDED.settings
            """, (name, json.dumps(settings)))

        logger.info(f"Saved settings of plugin {name}")
        return settings
