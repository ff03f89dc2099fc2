"""
Unit tests for the schema declared in cromwell.models
"""
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from cromwell import models
from cromwell.core.database import Base, init_db


class TestSchema:

    def test_all_tables_registered(self):
        assert {
            "products", "product_reviews", "orders", "coupons", "order_coupons",
            "page_stats", "cms", "dashboard_layouts", "plugins",
        } <= set(Base.metadata.tables)

    def test_page_entities_share_base_columns(self):
        for entity in (models.Product, models.ProductReview, models.Order, models.Coupon):
            columns = entity.__table__.columns
            assert columns["slug"].unique is True
            assert "create_date" in columns
            assert "is_enabled" in columns

    def test_review_belongs_to_product(self):
        foreign_key = next(iter(models.ProductReview.__table__.columns["product_id"].foreign_keys))

        assert foreign_key.column.table.name == "products"
        assert foreign_key.ondelete == "CASCADE"

    def test_init_db_creates_tables(self):
        engine = MagicMock()
        with patch("cromwell.core.database.get_engine", return_value=engine), \
                patch.object(Base.metadata, "create_all") as create_all:
            init_db()

        create_all.assert_called_once_with(bind=engine)


def column_ddl(entity, name):
    ddl = str(CreateTable(entity.__table__).compile(dialect=postgresql.dialect()))
    return next(line.strip() for line in ddl.splitlines() if line.strip().startswith(f"{name} "))


class TestServerDefaults:

    @pytest.mark.parametrize("entity", [models.Product, models.ProductReview, models.Order, models.Coupon])
    def test_is_enabled_defaults_to_true(self, entity):
        ddl = column_ddl(entity, "is_enabled")

        assert "NOT NULL" in ddl
        assert "DEFAULT true" in ddl

    @pytest.mark.parametrize("entity,column", [
        (models.Product, "reviews_count"),
        (models.PageStats, "views"),
    ])
    def test_counters_default_to_zero(self, entity, column):
        ddl = column_ddl(entity, column)

        assert "NOT NULL" in ddl
        assert "DEFAULT '0'" in ddl

    def test_plugin_is_installed_by_default(self):
        assert "DEFAULT true" in column_ddl(models.Plugin, "is_installed")
