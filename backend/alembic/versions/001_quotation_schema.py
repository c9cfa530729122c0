"""quotation_schema

Revision ID: 001_quotation_schema
Revises:
Create Date: 2026-10-18

Creates the quotation engine tables:
- catalog_items (pricing_unit holds the wire spelling PER_UNIT / RS_PER_WATT / RS_PER_KW)
- quotations
- quotation_versions (unique per quotation + sequence)
- quotation_line_items

Each table is created only if missing, so the migration is safe to run
after Base.metadata.create_all() already built the schema.
"""
import logging
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = '001_quotation_schema'
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger("alembic.001")


def _table_exists(conn, table_name: str) -> bool:
    return inspect(conn).has_table(table_name)


def upgrade() -> None:
    conn = op.get_bind()

    # ── catalog_items ─────────────────────────────────────────────────────────
    if not _table_exists(conn, 'catalog_items'):
        op.create_table(
            'catalog_items',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('description', sa.Text, nullable=True),
            sa.Column('brand', sa.String(100), nullable=True),
            sa.Column('sku', sa.String(100), nullable=True),
            sa.Column('sr_no', sa.Integer, nullable=True),
            sa.Column('unit_price', sa.Numeric(14, 4), nullable=False, server_default='0'),
            sa.Column('tax_rate', sa.Numeric(8, 6), nullable=True),
            sa.Column('margin_rate', sa.Numeric(8, 6), nullable=True),
            sa.Column('uom', sa.String(20), nullable=True),
            sa.Column('category', sa.String(100), nullable=True),
            sa.Column('pricing_unit', sa.String(20), nullable=False, server_default='PER_UNIT'),
            sa.Column('is_active', sa.Boolean, nullable=True, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index('ix_catalog_items_category', 'catalog_items', ['category'])
        op.create_index('ix_catalog_items_name', 'catalog_items', ['name'])
        logger.info("Created table: catalog_items")
    else:
        logger.info("Table catalog_items already exists — skipping create")

    # ── quotations ────────────────────────────────────────────────────────────
    if not _table_exists(conn, 'quotations'):
        op.create_table(
            'quotations',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('client_id', sa.String(36), nullable=False, index=True),
            sa.Column('title', sa.String(255), nullable=False),
            sa.Column('status', sa.String(20), nullable=False, server_default='DRAFT'),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        logger.info("Created table: quotations")
    else:
        logger.info("Table quotations already exists — skipping create")

    # ── quotation_versions ────────────────────────────────────────────────────
    if not _table_exists(conn, 'quotation_versions'):
        op.create_table(
            'quotation_versions',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('quotation_id', sa.String(36),
                      sa.ForeignKey('quotations.id', ondelete='CASCADE'), nullable=False),
            sa.Column('sequence', sa.Integer, nullable=False),
            sa.Column('version', sa.String(50), nullable=False),
            sa.Column('brand', sa.String(100), nullable=True),
            sa.Column('is_final', sa.Boolean, nullable=True, server_default=sa.false()),
            sa.Column('subtotal', sa.Numeric(18, 6), nullable=True),
            sa.Column('margin_total', sa.Numeric(18, 6), nullable=True),
            sa.Column('tax_total', sa.Numeric(18, 6), nullable=True),
            sa.Column('grand_total', sa.Numeric(18, 6), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.UniqueConstraint('quotation_id', 'sequence', name='uq_quotation_version_sequence'),
        )
        logger.info("Created table: quotation_versions")
    else:
        logger.info("Table quotation_versions already exists — skipping create")

    # ── quotation_line_items ──────────────────────────────────────────────────
    if not _table_exists(conn, 'quotation_line_items'):
        money = lambda name: sa.Column(name, sa.Numeric(18, 6), nullable=False)  # noqa: E731
        rate = lambda name: sa.Column(name, sa.Numeric(8, 6), nullable=False)    # noqa: E731
        op.create_table(
            'quotation_line_items',
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('quotation_version_id', sa.String(36),
                      sa.ForeignKey('quotation_versions.id', ondelete='CASCADE'), nullable=False),
            sa.Column('position', sa.Integer, nullable=False),
            sa.Column('item_id', sa.String(36), nullable=False),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('description', sa.Text, nullable=True),
            sa.Column('head', sa.String(100), nullable=True),
            sa.Column('unit', sa.String(20), nullable=True),
            sa.Column('pricing_unit', sa.String(20), nullable=False, server_default='PER_UNIT'),
            money('quantity'),
            sa.Column('unit_price', sa.Numeric(14, 4), nullable=False),
            rate('margin_rate'),
            rate('tax_rate'),
            money('base_amount'),
            money('margin_amount'),
            money('tax_amount'),
            money('line_total'),
        )
        logger.info("Created table: quotation_line_items")
    else:
        logger.info("Table quotation_line_items already exists — skipping create")


def downgrade() -> None:
    conn = op.get_bind()

    for table in ('quotation_line_items', 'quotation_versions', 'quotations', 'catalog_items'):
        if _table_exists(conn, table):
            op.drop_table(table)
