"""
CMS Repository - settings row and dashboard layouts

The `cms` table has a single row holding three JSON documents. It is
created empty on first read.
"""
import json
import logging
from typing import Any, Dict, Optional

from cromwell.domain.cms import CmsEntity
from cromwell.repositories.base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _json_dict(value) -> Dict[str, Any]:
    """JSON column value as a dict (psycopg2 decodes json, text needs loading)"""
    if not value:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


class CmsRepository(BaseRepository):
    table = "cms"
    model = CmsEntity
    columns = ("public_settings", "admin_settings", "internal_settings")
    has_slug = False
    timestamps = False

    def _map_row(self, row: dict) -> CmsEntity:
        return CmsEntity(
            id=row['id'],
            public_settings=_json_dict(row.get('public_settings')),
            admin_settings=_json_dict(row.get('admin_settings')),
            internal_settings=_json_dict(row.get('internal_settings')),
        )

    def get_cms_entity(self) -> CmsEntity:
        """Settings row, created empty if the table has none"""
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {self.select_columns}
                FROM cms
                ORDER BY cms.id
                LIMIT 1
            """)
            row = cursor.fetchone()

            if not row:
                logger.info("No CMS settings found, creating an empty entity")
                cursor.execute("""
                    INSERT INTO cms (public_settings, admin_settings, internal_settings)
                    VALUES (%s, %s, %s)
                    RETURNING id, public_settings, admin_settings, internal_settings
                """, ("{}", "{}", "{}"))
                row = cursor.fetchone()

        return self._map_row(row)

    def save_cms_entity(self, entity: CmsEntity) -> CmsEntity:
        if entity.id is None:
            entity = CmsEntity(
                id=self.get_cms_entity().id,
                public_settings=entity.public_settings,
                admin_settings=entity.admin_settings,
                internal_settings=entity.internal_settings,
            )

        with self._cursor() as cursor:
            row = self._update(cursor, entity.id, {
                "public_settings": json.dumps(entity.public_settings),
                "admin_settings": json.dumps(entity.admin_settings),
                "internal_settings": json.dumps(entity.internal_settings),
            })

        return self._map_row(row)

    # ------------------------------------------------------------------
    # Dashboard layouts
    # ------------------------------------------------------------------

    def _get_layout(self, condition: str, params: tuple) -> Optional[Dict[str, Any]]:
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT layout
                FROM dashboard_layouts
                WHERE {condition}
                ORDER BY id DESC
                LIMIT 1
            """, params)
            row = cursor.fetchone()

        if not row or not row['layout']:
            return None
        return _json_dict(row['layout'])

    def get_dashboard_layout(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Layout saved by a user, or None"""
        return self._get_layout("user_id = %s AND type = 'user'", (user_id,))

    def get_template_dashboard(self) -> Optional[Dict[str, Any]]:
        """System-wide template layout, or None"""
        return self._get_layout("type = 'template' AND for_whom = 'system'", ())

    def save_dashboard_layout(
        self,
        layout: Dict[str, Any],
        user_id: Optional[int] = None,
        type: str = "user",
        for_whom: str = "user",
    ) -> Dict[str, Any]:
        """Insert or replace the layout of a user (or the system template)"""
        with self._cursor() as cursor:
            if user_id is not None:
                cursor.execute(
                    "SELECT id FROM dashboard_layouts WHERE user_id = %s AND type = %s",
                    (user_id, type)
                )
            else:
                cursor.execute(
                    "SELECT id FROM dashboard_layouts WHERE user_id IS NULL AND type = %s AND for_whom = %s",
                    (type, for_whom)
                )
            existing = cursor.fetchone()

            if existing:
                cursor.execute(
                    "UPDATE dashboard_layouts SET layout = %s WHERE id = %s",
                    (json.dumps(layout), existing['id'])
                )
            else:
                cursor.execute("""
                    INSERT INTO dashboard_layouts (user_id, type, for_whom, layout)
                    VALUES (%s, %s, %s, %s)
                """, (user_id, type, for_whom, json.dumps(layout)))

        return layout
