"""Create nearby_stores, scraped_products and product_search_cache.

Revision ID: 0001
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "nearby_stores",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("brand", sa.String(64), nullable=True,
                  comment="Normalized chain name, e.g. COTO"),
        sa.Column("store_type", sa.String(32), nullable=True,
                  comment="supermarket, convenience, bakery, ..."),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("website_url", sa.Text(), nullable=True),
        sa.Column("scraping_enabled", sa.Boolean(), nullable=False,
                  server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  server_default=sa.text("now()")),
    )
    op.create_index("ix_nearby_stores_lat_lon", "nearby_stores",
                    ["latitude", "longitude"])
    op.create_index("ix_nearby_stores_brand", "nearby_stores", ["brand"])

    op.create_table(
        "scraped_products",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("store_id", sa.String(36),
                  sa.ForeignKey("nearby_stores.id", ondelete="CASCADE"),
                  nullable=False),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("price_current", sa.Float(), nullable=True),
        sa.Column("price_regular", sa.Float(), nullable=True),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=True),
        sa.Column("nutritional_claims", postgresql.JSONB(), nullable=True,
                  comment="List of label claims, e.g. 'sin TACC'"),
        sa.Column("nutrition_info", postgresql.JSONB(), nullable=True,
                  comment="calories/protein/carbs/fats/sodium"),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("product_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  server_default=sa.text("now()")),
    )
    op.create_index("ix_scraped_products_store_id", "scraped_products", ["store_id"])
    op.create_index("ix_scraped_products_created_at", "scraped_products", ["created_at"])

    op.create_table(
        "product_search_cache",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("geohash", sa.String(12), nullable=False),
        sa.Column("query_signature", sa.Text(), nullable=False,
                  comment="Normalized JSON of radius, filters and limit"),
        sa.Column("results", postgresql.JSONB(), nullable=False,
                  comment="Serialized StoreResult list"),
        sa.Column("result_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text("now()")),
        sa.UniqueConstraint("geohash", "query_signature",
                            name="uq_product_search_cache_key"),
    )
    op.create_index("ix_product_search_cache_result_count",
                    "product_search_cache", ["result_count"])
    op.create_index("ix_product_search_cache_created_at",
                    "product_search_cache", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_product_search_cache_created_at",
                  table_name="product_search_cache")
    op.drop_index("ix_product_search_cache_result_count",
                  table_name="product_search_cache")
    op.drop_table("product_search_cache")
    op.drop_index("ix_scraped_products_created_at", table_name="scraped_products")
    op.drop_index("ix_scraped_products_store_id", table_name="scraped_products")
    op.drop_table("scraped_products")
    op.drop_index("ix_nearby_stores_brand", table_name="nearby_stores")
    op.drop_index("ix_nearby_stores_lat_lon", table_name="nearby_stores")
    op.drop_table("nearby_stores")
