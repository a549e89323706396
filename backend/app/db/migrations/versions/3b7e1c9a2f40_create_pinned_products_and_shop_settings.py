"""create pinned_products and shop_settings

Revision ID: 3b7e1c9a2f40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3b7e1c9a2f40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # 1. 商品处理结果（不加 shop+product_id 唯一约束，由 repo 先删后插维护）
    op.create_table(
        "pinned_products",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("shop", sa.String(length=255), nullable=False),
        sa.Column("product_id", sa.String(length=128), nullable=False),
        sa.Column("product_handle", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("status IN ('PUBLISHED','IGNORED')", name=op.f("ck_pinned_products_status")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_pinned_products")),
    )
    op.create_index("ix_pinned_products_shop_product", "pinned_products", ["shop", "product_id"], unique=False)
    op.create_index("ix_pinned_products_shop_status", "pinned_products", ["shop", "status", "created_at"], unique=False)

    # 2. 店铺设置（JSON 文本，读-合并-写）
    op.create_table(
        "shop_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("shop", sa.String(length=255), nullable=False),
        sa.Column("settings", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_shop_settings")),
    )
    op.create_index("ix_shop_settings_shop", "shop_settings", ["shop"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_shop_settings_shop", table_name="shop_settings")
    op.drop_table("shop_settings")
    op.drop_index("ix_pinned_products_shop_status", table_name="pinned_products")
    op.drop_index("ix_pinned_products_shop_product", table_name="pinned_products")
    op.drop_table("pinned_products")
