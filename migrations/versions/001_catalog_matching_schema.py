"""Catalog matching schema.

This migration creates:
- approval_status, description_provenance, matching_status and
  matching_method ENUM types
- catalog_entries with per-tenant unique internal codes
- alternative_descriptions, unique by normalized text per entry
- supplier_ledgers, unique by supplier fiscal id per entry
- price_history, append-only, unique by sequence per ledger
- invoice_line_matches, one row per (tenant, invoice, line)

Revision ID: 001_catalog_matching_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_catalog_matching_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


APPROVAL_STATUS = sa.Enum('pending', 'approved', 'rejected', name='approval_status')
DESCRIPTION_PROVENANCE = sa.Enum(
    'original', 'invoice', 'manual', 'supplier', name='description_provenance'
)
MATCHING_STATUS = sa.Enum(
    'pending', 'matched', 'unmatched', 'pending_review', 'approved', 'rejected', 'skipped',
    name='matching_status',
)
MATCHING_METHOD = sa.Enum(
    'exact', 'high_fuzzy', 'medium_fuzzy', 'low_fuzzy', 'very_low_fuzzy', 'manual',
    name='matching_method',
)


def upgrade() -> None:
    # ===== Catalog entries =====
    op.create_table(
        'catalog_entries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('internal_code', sa.String(100), nullable=False),
        sa.Column('description', sa.String(1000), nullable=False),
        sa.Column('normalized_description', sa.String(1000), nullable=False),
        sa.Column('unit_of_measure', sa.String(50), nullable=True),
        sa.Column('category', sa.String(255), nullable=True),
        sa.Column('attributes', sa.JSON(), nullable=False),
        sa.Column('approval_status', APPROVAL_STATUS, nullable=False, server_default='pending'),
        sa.Column('approved_by', sa.String(255), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approval_notes', sa.Text(), nullable=True),
        sa.Column('duplicate_ignored', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('tenant_id', 'internal_code', name='uq_catalog_entries_tenant_code'),
    )
    op.create_index('ix_catalog_entries_tenant_id', 'catalog_entries', ['tenant_id'])
    op.create_index('ix_catalog_entries_approval_status', 'catalog_entries', ['approval_status'])
    op.create_index('ix_catalog_entries_duplicate_ignored', 'catalog_entries', ['duplicate_ignored'])
    op.create_index(
        'ix_catalog_entries_tenant_normalized',
        'catalog_entries',
        ['tenant_id', 'normalized_description'],
    )

    # ===== Alternative descriptions =====
    op.create_table(
        'alternative_descriptions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'catalog_entry_id',
            sa.Uuid(),
            sa.ForeignKey('catalog_entries.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('text', sa.String(1000), nullable=False),
        sa.Column('normalized_text', sa.String(1000), nullable=False),
        sa.Column('provenance', DESCRIPTION_PROVENANCE, nullable=False),
        sa.Column('frequency', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('added_by', sa.String(255), nullable=True),
        sa.Column('first_seen_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            'catalog_entry_id', 'normalized_text', name='uq_alternative_descriptions_entry_text'
        ),
        sa.CheckConstraint('frequency >= 1', name='check_frequency_positive'),
        sa.CheckConstraint('confidence >= 0 AND confidence <= 1', name='check_confidence_range'),
    )
    op.create_index(
        'ix_alternative_descriptions_catalog_entry_id',
        'alternative_descriptions',
        ['catalog_entry_id'],
    )

    # ===== Supplier ledgers =====
    op.create_table(
        'supplier_ledgers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'catalog_entry_id',
            sa.Uuid(),
            sa.ForeignKey('catalog_entries.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('supplier_fiscal_id', sa.String(64), nullable=False),
        sa.Column('supplier_name', sa.String(500), nullable=True),
        sa.Column('supplier_id', sa.Uuid(), nullable=True),
        sa.Column('current_price', sa.Numeric(precision=12, scale=4), nullable=True),
        sa.Column('average_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('best_price', sa.Numeric(precision=12, scale=4), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            'catalog_entry_id', 'supplier_fiscal_id', name='uq_supplier_ledgers_entry_supplier'
        ),
    )
    op.create_index('ix_supplier_ledgers_catalog_entry_id', 'supplier_ledgers', ['catalog_entry_id'])
    op.create_index('ix_supplier_ledgers_supplier_fiscal_id', 'supplier_ledgers', ['supplier_fiscal_id'])

    # ===== Price history =====
    op.create_table(
        'price_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'ledger_id',
            sa.Uuid(),
            sa.ForeignKey('supplier_ledgers.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('unit_of_measure', sa.String(50), nullable=True),
        sa.Column('source_invoice_id', sa.String(100), nullable=False),
        sa.Column('source_invoice_number', sa.String(100), nullable=False),
        sa.Column('source_invoice_date', sa.Date(), nullable=False),
        sa.Column('source_line_number', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('observed_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('ledger_id', 'sequence', name='uq_price_history_ledger_sequence'),
        sa.UniqueConstraint(
            'ledger_id', 'source_invoice_id', 'source_line_number',
            name='uq_price_history_ledger_invoice_line',
        ),
    )
    op.create_index('ix_price_history_ledger_id', 'price_history', ['ledger_id'])
    op.create_index('ix_price_history_source_invoice_id', 'price_history', ['source_invoice_id'])
    op.create_index('ix_price_history_source_invoice_date', 'price_history', ['source_invoice_date'])

    # ===== Invoice line projections =====
    op.create_table(
        'invoice_line_matches',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('invoice_id', sa.String(100), nullable=False),
        sa.Column('invoice_number', sa.String(100), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(1000), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('currency', sa.String(3), nullable=True),
        sa.Column('unit_of_measure', sa.String(50), nullable=True),
        sa.Column('article_code', sa.String(100), nullable=True),
        sa.Column('vat_rate', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('supplier_fiscal_id', sa.String(64), nullable=False),
        sa.Column('supplier_name', sa.String(500), nullable=True),
        sa.Column('supplier_id', sa.Uuid(), nullable=True),
        sa.Column('matching_status', MATCHING_STATUS, nullable=False, server_default='pending'),
        sa.Column('match_confidence', sa.Float(), nullable=True),
        sa.Column(
            'matched_catalog_entry_id',
            sa.Uuid(),
            sa.ForeignKey('catalog_entries.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('matched_internal_code', sa.String(100), nullable=True),
        sa.Column('matching_method', MATCHING_METHOD, nullable=True),
        sa.Column('is_new_entry_candidate', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('decision_reason', sa.String(100), nullable=True),
        sa.Column('matching_notes', sa.Text(), nullable=True),
        sa.Column('suggested_catalog_entry_id', sa.Uuid(), nullable=True),
        sa.Column('suggested_description', sa.String(1000), nullable=True),
        sa.Column('suggested_internal_code', sa.String(100), nullable=True),
        sa.Column('reviewed_by', sa.String(255), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            'tenant_id', 'invoice_id', 'line_number',
            name='uq_invoice_line_matches_tenant_invoice_line',
        ),
        sa.CheckConstraint(
            'match_confidence IS NULL OR (match_confidence >= 0 AND match_confidence <= 1)',
            name='check_match_confidence',
        ),
    )
    op.create_index('ix_invoice_line_matches_tenant_id', 'invoice_line_matches', ['tenant_id'])
    op.create_index('ix_invoice_line_matches_invoice_id', 'invoice_line_matches', ['invoice_id'])
    op.create_index(
        'ix_invoice_line_matches_matched_catalog_entry_id',
        'invoice_line_matches',
        ['matched_catalog_entry_id'],
    )
    op.create_index(
        'ix_invoice_line_matches_tenant_status',
        'invoice_line_matches',
        ['tenant_id', 'matching_status'],
    )


def downgrade() -> None:
    op.drop_table('invoice_line_matches')
    op.drop_table('price_history')
    op.drop_table('supplier_ledgers')
    op.drop_table('alternative_descriptions')
    op.drop_table('catalog_entries')

    bind = op.get_bind()
    for enum in (MATCHING_METHOD, MATCHING_STATUS, DESCRIPTION_PROVENANCE, APPROVAL_STATUS):
        enum.drop(bind, checkfirst=True)
