"""
Base Repository - shared data access for CMS entities

Every entity repository declares its table, domain model and columns and
inherits paging, filtering, CRUD and bulk deletion from here.
All SQL identifiers come from class attributes, never from user input.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel

from cromwell.core.config import settings
from cromwell.core.database import get_db_connection_dict
from cromwell.core.exceptions import BadRequestError, NotFoundError
from cromwell.domain.common import BaseFilter, DeleteManyInput, PagedList, PagedMeta, PagedParams
from cromwell.services.cache_strategy import CacheStrategyManager
from cromwell.services.database_optimizer import DatabaseOptimizer, monitored_query

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Generic repository over a single table

    Subclasses set:
        table: Table name
        model: Pydantic domain model built from rows
        columns: Writable columns (id excluded)
        entity_type: Page type used by page_stats (None if the entity has no page)
        has_slug: Whether the table has a unique slug column
        timestamps: Whether the table has create_date/update_date columns
        server_defaults: Columns left to their database default when given as None

    Reads and writes go through `cache_strategy_manager` and `db_optimizer`
    when they are set; without them every call hits the database.
    """

    table: str = ""
    model: Type[BaseModel] = None
    columns: Tuple[str, ...] = ()
    entity_type: Optional[str] = None
    has_slug: bool = True
    timestamps: bool = True
    server_defaults: Tuple[str, ...] = ("is_enabled",)

    def __init__(
        self,
        cache_strategy_manager: Optional[CacheStrategyManager] = None,
        db_optimizer: Optional[DatabaseOptimizer] = None,
    ):
        self.cache_strategy_manager = cache_strategy_manager
        self.db_optimizer = db_optimizer

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _cursor(self):
        """Cursor in its own transaction: commit on success, rollback on error"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    @property
    def all_columns(self) -> Tuple[str, ...]:
        extra = ("create_date", "update_date") if self.timestamps else ()
        return ("id",) + tuple(self.columns) + extra

    @property
    def select_columns(self) -> str:
        return ", ".join(f"{self.table}.{column}" for column in self.all_columns)

    def _map_row(self, row: dict):
        return self.model(**row)

    def _input_to_dict(self, data: Union[BaseModel, Dict[str, Any]], exclude_unset: bool = True) -> Dict[str, Any]:
        """Keep only known writable columns of the input (None is dropped for server_defaults)"""
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=exclude_unset)
        return {
            key: value for key, value in data.items()
            if key in self.columns and not (value is None and key in self.server_defaults)
        }

    def _order_clause(self, params: PagedParams) -> str:
        order_by = params.order_by if params.order_by in self.all_columns else "id"
        direction = "ASC" if params.order.upper() == "ASC" else "DESC"
        return f"{self.table}.{order_by} {direction}"

    @staticmethod
    def _where(conditions: Sequence[str]) -> str:
        return " AND ".join(conditions) if conditions else "1=1"

    @monitored_query
    def _paged_query(
        self,
        conditions: List[str],
        params: List[Any],
        paged_params: Optional[PagedParams] = None
    ) -> PagedList:
        paged_params = paged_params or PagedParams()
        page_size = paged_params.page_size or settings.DEFAULT_PAGE_SIZE
        offset = (paged_params.page_number - 1) * page_size
        where_clause = self._where(conditions)

        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT COUNT(*) AS total
                FROM {self.table}
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {self.select_columns}
                FROM {self.table}
                WHERE {where_clause}
                ORDER BY {self._order_clause(paged_params)}
                LIMIT %s OFFSET %s
            """, list(params) + [page_size, offset])
            rows = cursor.fetchall()

        return PagedList(
            elements=[self._map_row(row) for row in rows],
            paged_meta=PagedMeta.build(paged_params.page_number, page_size, total),
        )

    def _check_slug_available(self, cursor, slug: str, exclude_id: Optional[int] = None):
        cursor.execute(
            f"SELECT id FROM {self.table} WHERE slug = %s",
            (slug,)
        )
        row = cursor.fetchone()
        if row and row['id'] != exclude_id:
            raise BadRequestError(f"{self.table}: slug '{slug}' is already in use")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_paged(self, params: Optional[PagedParams] = None) -> PagedList:
        return self._paged_query([], [], params)

    @monitored_query
    def get_all(self) -> list:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {self.select_columns} FROM {self.table} ORDER BY {self.table}.id")
            rows = cursor.fetchall()
        return [self._map_row(row) for row in rows]

    @monitored_query
    def get_by_id(self, entity_id: int):
        """
        Find entity by ID

        Raises:
            NotFoundError if no row has this id
        """
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {self.select_columns}
                FROM {self.table}
                WHERE {self.table}.id = %s
            """, (entity_id,))
            row = cursor.fetchone()

        if not row:
            raise NotFoundError(f"{self.table} {entity_id} not found!")
        return self._map_row(row)

    @monitored_query
    def get_by_slug(self, slug: str):
        """
        Find entity by slug

        Raises:
            NotFoundError if no row has this slug
        """
        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT {self.select_columns}
                FROM {self.table}
                WHERE {self.table}.slug = %s
            """, (slug,))
            row = cursor.fetchone()

        if not row:
            raise NotFoundError(f"{self.table} {slug} not found!")
        return self._map_row(row)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self, cursor, data: Dict[str, Any], entity_id: Optional[int] = None) -> dict:
        """Insert a row; an empty slug becomes the new id"""
        if self.has_slug and data.get('slug'):
            self._check_slug_available(cursor, data['slug'])

        values = dict(data)
        if entity_id:
            values['id'] = entity_id

        if values:
            names = ", ".join(values.keys())
            placeholders = ", ".join(["%s"] * len(values))
            cursor.execute(f"""
                INSERT INTO {self.table} ({names})
                VALUES ({placeholders})
                RETURNING {", ".join(self.all_columns)}
            """, list(values.values()))
        else:
            cursor.execute(f"""
                INSERT INTO {self.table} DEFAULT VALUES
                RETURNING {", ".join(self.all_columns)}
            """)
        row = cursor.fetchone()

        if self.has_slug and not row.get('slug'):
            cursor.execute(f"""
                UPDATE {self.table} SET slug = %s
                WHERE id = %s
                RETURNING {", ".join(self.all_columns)}
            """, (str(row['id']), row['id']))
            row = cursor.fetchone()

        return row

    def _update(self, cursor, entity_id: int, data: Dict[str, Any]) -> dict:
        cursor.execute(f"SELECT id FROM {self.table} WHERE id = %s", (entity_id,))
        if not cursor.fetchone():
            raise NotFoundError(f"{self.table} {entity_id} not found!")

        if self.has_slug and data.get('slug'):
            self._check_slug_available(cursor, data['slug'], exclude_id=entity_id)

        assignments = [f"{name} = %s" for name in data.keys()]
        if self.timestamps:
            assignments.append("update_date = NOW()")

        if assignments:
            cursor.execute(f"""
                UPDATE {self.table}
                SET {", ".join(assignments)}
                WHERE id = %s
                RETURNING {", ".join(self.all_columns)}
            """, list(data.values()) + [entity_id])
        else:
            cursor.execute(f"""
                SELECT {", ".join(self.all_columns)}
                FROM {self.table} WHERE id = %s
            """, (entity_id,))
        return cursor.fetchone()

    def create_entity(self, data: Union[BaseModel, Dict[str, Any]], entity_id: Optional[int] = None):
        values = self._input_to_dict(data)
        with self._cursor() as cursor:
            row = self._insert(cursor, values, entity_id)
        return self._map_row(row)

    def update_entity(self, entity_id: int, data: Union[BaseModel, Dict[str, Any]]):
        values = self._input_to_dict(data)
        with self._cursor() as cursor:
            row = self._update(cursor, entity_id, values)
        return self._map_row(row)

    def delete_entity(self, entity_id: int) -> bool:
        # Raises NotFoundError if missing
        self.get_by_id(entity_id)

        with self._cursor() as cursor:
            cursor.execute(f"DELETE FROM {self.table} WHERE id = %s", (entity_id,))
        return True

    def apply_delete_many(self, conditions: List[str], params: List[Any], input: DeleteManyInput):
        """
        Add the id selection of a bulk deletion to a WHERE clause

        Raises:
            BadRequestError if nothing is selected (all=False and no ids)
        """
        if input.all:
            if input.ids:
                conditions.append(f"{self.table}.id <> ALL(%s)")
                params.append(list(input.ids))
            # else: no WHERE needed
        else:
            ids = [entity_id for entity_id in input.ids if isinstance(entity_id, int) and not isinstance(entity_id, bool)]
            if not input.ids:
                raise BadRequestError(
                    f"apply_delete_many: You have to specify ids to delete for {self.table}"
                )
            conditions.append(f"{self.table}.id = ANY(%s)")
            params.append(ids)

    def _delete_where(self, conditions: List[str], params: List[Any]):
        with self._cursor() as cursor:
            cursor.execute(f"DELETE FROM {self.table} WHERE {self._where(conditions)}", params)
            deleted = cursor.rowcount
        logger.info(f"Deleted {deleted} rows from {self.table}")

    def delete_many(self, input: DeleteManyInput) -> bool:
        conditions: List[str] = []
        params: List[Any] = []
        self.apply_delete_many(conditions, params, input)
        self._delete_where(conditions, params)
        return True

    # ------------------------------------------------------------------
    # Filtering and stats
    # ------------------------------------------------------------------

    def apply_base_filter(self, conditions: List[str], params: List[Any], filter: Optional[BaseFilter]):
        if not filter:
            return

        for item in filter.filters:
            if item.key not in self.all_columns:
                logger.debug(f"{self.table}: ignoring filter on unknown column {item.key}")
                continue

            column = f"{self.table}.{item.key}"
            if item.exact:
                if item.value is None:
                    conditions.append(f"{column} IS NULL")
                else:
                    conditions.append(f"{column} = %s")
                    params.append(item.value)
                continue

            if item.from_ is not None or item.to is not None:
                if item.from_ is not None:
                    conditions.append(f"{column} >= %s")
                    params.append(item.from_)
                if item.to is not None:
                    conditions.append(f"{column} <= %s")
                    params.append(item.to)
                continue

            if item.value is not None:
                conditions.append(f"CAST({column} AS TEXT) ILIKE %s")
                params.append(f"%{item.value}%")

    def get_filtered_entities(
        self,
        paged_params: Optional[PagedParams] = None,
        filter: Optional[BaseFilter] = None
    ) -> PagedList:
        conditions: List[str] = []
        params: List[Any] = []
        self.apply_base_filter(conditions, params, filter)
        return self._paged_query(conditions, params, paged_params)

    def get_entity_views(self, entity_id: int) -> Optional[int]:
        """Page views of an entity, or None if it has no stats"""
        if not self.entity_type:
            return None

        with self._cursor() as cursor:
            cursor.execute(f"""
                SELECT ps.views
                FROM {self.table}
                LEFT JOIN page_stats ps
                    ON ps.slug = {self.table}.slug AND ps.entity_type = %s
                WHERE {self.table}.id = %s
            """, (self.entity_type, entity_id))
            row = cursor.fetchone()

        return row['views'] if row else None
