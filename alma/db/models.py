import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


def _uuid_str() -> str:
    return str(uuid.uuid4())


class NearbyStore(Base):
    __tablename__ = "nearby_stores"
    __table_args__ = (
        Index("ix_nearby_stores_lat_lon", "latitude", "longitude"),
    )

    id = Column(String(36), primary_key=True, default=_uuid_str)
    name = Column(Text, nullable=False)
    brand = Column(String(64), nullable=True, index=True, comment="Normalized chain name, e.g. COTO")
    store_type = Column(String(32), nullable=True, comment="supermarket, convenience, bakery, ...")
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    website_url = Column(Text, nullable=True)
    scraping_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    products = relationship("ScrapedProduct", back_populates="store")

    def __repr__(self) -> str:
        return f"<NearbyStore id={self.id} name={self.name!r}>"


class ScrapedProduct(Base):
    __tablename__ = "scraped_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(
        String(36),
        ForeignKey("nearby_stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_name = Column(Text, nullable=False)
    brand = Column(Text, nullable=True)
    price_current = Column(Float, nullable=True)
    price_regular = Column(Float, nullable=True)
    unit = Column(String(32), nullable=True)
    quantity = Column(Float, nullable=True)
    nutritional_claims = Column(JSONB, nullable=True, comment="List of label claims, e.g. 'sin TACC'")
    nutrition_info = Column(JSONB, nullable=True, comment="calories/protein/carbs/fats/sodium")
    image_url = Column(Text, nullable=True)
    product_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    store = relationship("NearbyStore", back_populates="products")

    def __repr__(self) -> str:
        return f"<ScrapedProduct id={self.id} name={self.product_name!r}>"


class ProductSearchCache(Base):
    __tablename__ = "product_search_cache"
    __table_args__ = (
        UniqueConstraint("geohash", "query_signature", name="uq_product_search_cache_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    geohash = Column(String(12), nullable=False)
    query_signature = Column(Text, nullable=False, comment="Normalized JSON of radius, filters and limit")
    results = Column(JSONB, nullable=False, comment="Serialized StoreResult list")
    result_count = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<ProductSearchCache geohash={self.geohash} count={self.result_count}>"
