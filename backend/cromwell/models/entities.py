"""
Database tables of the CMS

Used to create the schema (cromwell.core.database.init_db). Repositories
query these tables with raw SQL.
"""
from sqlalchemy import (
    DECIMAL,
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    true,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from cromwell.core.database import Base


class BasePageMixin:
    """Columns shared by every entity that has its own page"""

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), unique=True, index=True)
    is_enabled = Column(Boolean, nullable=False, server_default=true())
    create_date = Column(DateTime(timezone=True), server_default=func.now())
    update_date = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


order_coupons = Table(
    "order_coupons",
    Base.metadata,
    Column("order_id", Integer, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True),
    Column("coupon_id", Integer, ForeignKey("coupons.id", ondelete="CASCADE"), primary_key=True),
)


class Product(BasePageMixin, Base):
    __tablename__ = "products"

    name = Column(String(255), index=True)
    sku = Column(String(255), index=True)
    price = Column(DECIMAL(12, 2))
    old_price = Column(DECIMAL(12, 2))
    description = Column(Text)
    main_image = Column(String(400))
    average_rating = Column(Float)
    reviews_count = Column(Integer, nullable=False, server_default="0")

    reviews = relationship("ProductReview", back_populates="product", cascade="all, delete-orphan")


class ProductReview(BasePageMixin, Base):
    __tablename__ = "product_reviews"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    title = Column(String(255))
    description = Column(Text)
    rating = Column(Float)
    user_name = Column(String(255))
    user_id = Column(Integer, index=True)
    approved = Column(Boolean)

    product = relationship("Product", back_populates="reviews")


class Order(BasePageMixin, Base):
    __tablename__ = "orders"

    status = Column(String(255), index=True)
    cart = Column(Text)
    order_total_price = Column(DECIMAL(12, 2))
    cart_total_price = Column(DECIMAL(12, 2))
    cart_old_total_price = Column(DECIMAL(12, 2))
    shipping_price = Column(DECIMAL(12, 2))
    total_qnt = Column(Integer)

    user_id = Column(Integer, index=True)
    customer_name = Column(String(255))
    customer_phone = Column(String(255))
    customer_email = Column(String(255))
    customer_address = Column(String(1000))
    customer_comment = Column(String(3000))

    shipping_method = Column(String(255))
    payment_method = Column(String(255))
    currency = Column(String(255))

    coupons = relationship("Coupon", secondary=order_coupons)


class Coupon(BasePageMixin, Base):
    __tablename__ = "coupons"

    code = Column(String(255), unique=True, index=True, nullable=False)
    discount_type = Column(String(50))
    value = Column(DECIMAL(12, 2))
    description = Column(Text)
    expiry_date = Column(DateTime(timezone=True))
    usage_limit = Column(Integer)


class PageStats(Base):
    """Page view counters, keyed by entity slug and type"""
    __tablename__ = "page_stats"
    __table_args__ = (UniqueConstraint("slug", "entity_type"),)

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), index=True)
    entity_type = Column(String(50), index=True)
    views = Column(Integer, nullable=False, server_default="0")


class Cms(Base):
    __tablename__ = "cms"

    id = Column(Integer, primary_key=True, index=True)
    public_settings = Column(JSON)
    admin_settings = Column(JSON)
    internal_settings = Column(JSON)


class DashboardLayout(Base):
    __tablename__ = "dashboard_layouts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, index=True)
    type = Column(String(50))  # 'user' | 'template'
    for_whom = Column(String(50))  # 'user' | 'system'
    layout = Column(JSON)


class Plugin(Base):
    __tablename__ = "plugins"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    settings = Column(JSON)
    is_installed = Column(Boolean, nullable=False, server_default=true())
