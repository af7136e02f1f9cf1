"""initial ledger schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the complete LedgerPOS schema from scratch:
- companies: tenant root
- entities / accounts: customer and vendor master data, one account per (entity, company)
- products / inventory_records / inventory_batches / inventory_units: batch stock
- sale_transactions / sale_lines / payments: POS sales and settlement
- return_transactions / return_lines: returns against an original sale
- ledger_entries: append-only double-entry rows, two per entry group
- document_sequences: per-company counters for POS-/RTN-/EXP-/PAY-/RCV- numbers
- audit_events: post-commit audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, **kwargs):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'), **kwargs)


def upgrade():
    # ============================================================================
    # companies: tenant root
    # ============================================================================
    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id', name='pk_companies'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_companies_code', 'companies', ['code'], unique=True)
    op.create_index('ix_companies_is_active', 'companies', ['is_active'])

    # ============================================================================
    # entities / accounts
    # ============================================================================
    op.create_table(
        'entities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('entity_type', sa.String(length=16), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_entities_company_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_entities'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_entities_company_id', 'entities', ['company_id'])
    op.create_index('ix_entities_is_deleted', 'entities', ['is_deleted'])
    op.create_index('ix_entities_company_type', 'entities', ['company_id', 'entity_type'])

    # One account per (entity, company): lazy provisioning relies on this constraint
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['entity_id'], ['entities.id'], name='fk_accounts_entity_id_entities'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_accounts_company_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_accounts'),
        sa.UniqueConstraint('entity_id', 'company_id', name='uq_accounts_entity_company'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accounts_entity_id', 'accounts', ['entity_id'])
    op.create_index('ix_accounts_company_id', 'accounts', ['company_id'])
    op.create_index('ix_accounts_status', 'accounts', ['status'])
    op.create_index('ix_accounts_is_deleted', 'accounts', ['is_deleted'])
    op.create_index('ix_accounts_company_type', 'accounts', ['company_id', 'entity_type'])

    # ============================================================================
    # products / inventory
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit_purchase_price_cents', sa.Integer(), nullable=False),
        sa.Column('is_serialized', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_products_company_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('company_id', 'sku', name='uq_products_company_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_company_id', 'products', ['company_id'])
    op.create_index('ix_products_company_name', 'products', ['company_id', 'name'])

    # total_quantity == SUM(inventory_batches.quantity), maintained by the service layer
    op.create_table(
        'inventory_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=True),
        sa.Column('total_quantity', sa.Integer(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint('total_quantity >= 0', name='ck_inventory_records_total_quantity_non_negative'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_inventory_records_company_id_companies'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_inventory_records_product_id_products'),
        sa.ForeignKeyConstraint(['vendor_id'], ['entities.id'], name='fk_inventory_records_vendor_id_entities'),
        sa.PrimaryKeyConstraint('id', name='pk_inventory_records'),
        sa.UniqueConstraint('company_id', 'product_id', 'vendor_id', name='uq_inventory_company_product_vendor'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_records_company_id', 'inventory_records', ['company_id'])
    op.create_index('ix_inventory_records_product_id', 'inventory_records', ['product_id'])
    op.create_index('ix_inventory_records_vendor_id', 'inventory_records', ['vendor_id'])
    op.create_index('ix_inventory_records_is_deleted', 'inventory_records', ['is_deleted'])
    op.create_index('ix_inventory_company_product', 'inventory_records', ['company_id', 'product_id'])

    op.create_table(
        'inventory_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_code', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_batches_quantity_non_negative'),
        sa.ForeignKeyConstraint(['record_id'], ['inventory_records.id'], name='fk_inventory_batches_record_id_inventory_records'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_inventory_batches_company_id_companies'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_inventory_batches_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_inventory_batches'),
        sa.UniqueConstraint('record_id', 'batch_code', name='uq_batches_record_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_batches_record_id', 'inventory_batches', ['record_id'])
    op.create_index('ix_batches_company_product', 'inventory_batches', ['company_id', 'product_id'])

    # ============================================================================
    # sales
    # ============================================================================
    op.create_table(
        'sale_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('transaction_number', sa.String(length=64), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('tax_cents', sa.Integer(), nullable=False),
        sa.Column('total_payable_cents', sa.Integer(), nullable=False),
        sa.Column('paid_amount_cents', sa.Integer(), nullable=False),
        sa.Column('change_given_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('linked_entity_id', sa.Integer(), nullable=True),
        sa.Column('account_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_sale_transactions_company_id_companies'),
        sa.ForeignKeyConstraint(['linked_entity_id'], ['entities.id'], name='fk_sale_transactions_linked_entity_id_entities'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_sale_transactions_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_sale_transactions'),
        sa.UniqueConstraint('company_id', 'transaction_number', name='uq_sales_company_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_transactions_company_id', 'sale_transactions', ['company_id'])
    op.create_index('ix_sale_transactions_linked_entity_id', 'sale_transactions', ['linked_entity_id'])
    op.create_index('ix_sale_transactions_account_id', 'sale_transactions', ['account_id'])
    op.create_index('ix_sales_company_created', 'sale_transactions', ['company_id', 'created_at'])

    op.create_table(
        'sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('serial_numbers', sa.JSON(), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_sale_lines_quantity_positive'),
        sa.ForeignKeyConstraint(['sale_id'], ['sale_transactions.id'], name='fk_sale_lines_sale_id_sale_transactions'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_sale_lines_product_id_products'),
        sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], name='fk_sale_lines_batch_id_inventory_batches'),
        sa.PrimaryKeyConstraint('id', name='pk_sale_lines'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'])

    # Serialized units reference the sale that consumed them
    op.create_table(
        'inventory_units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('returned_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_inventory_units_company_id_companies'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_inventory_units_product_id_products'),
        sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], name='fk_inventory_units_batch_id_inventory_batches'),
        sa.ForeignKeyConstraint(['sale_id'], ['sale_transactions.id'], name='fk_inventory_units_sale_id_sale_transactions'),
        sa.PrimaryKeyConstraint('id', name='pk_inventory_units'),
        sa.UniqueConstraint('serial_number', name='uq_inventory_units_serial'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_units_company_id', 'inventory_units', ['company_id'])
    op.create_index('ix_inventory_units_product_id', 'inventory_units', ['product_id'])
    op.create_index('ix_inventory_units_sale_id', 'inventory_units', ['sale_id'])
    op.create_index('ix_units_batch_status', 'inventory_units', ['batch_id', 'status'])

    # ============================================================================
    # returns
    # ============================================================================
    op.create_table(
        'return_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('return_number', sa.String(length=64), nullable=False),
        sa.Column('counter_number', sa.Integer(), nullable=False),
        sa.Column('original_transaction_id', sa.Integer(), nullable=False),
        sa.Column('total_refund_cents', sa.Integer(), nullable=False),
        sa.Column('refund_method', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('linked_entity_id', sa.Integer(), nullable=True),
        sa.Column('account_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_return_transactions_company_id_companies'),
        sa.ForeignKeyConstraint(['original_transaction_id'], ['sale_transactions.id'],
                                name='fk_return_transactions_original_transaction_id_sale_transactions'),
        sa.ForeignKeyConstraint(['linked_entity_id'], ['entities.id'], name='fk_return_transactions_linked_entity_id_entities'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_return_transactions_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_return_transactions'),
        sa.UniqueConstraint('company_id', 'return_number', name='uq_returns_company_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_return_transactions_company_id', 'return_transactions', ['company_id'])
    op.create_index('ix_return_transactions_original_transaction_id', 'return_transactions', ['original_transaction_id'])
    op.create_index('ix_return_transactions_linked_entity_id', 'return_transactions', ['linked_entity_id'])
    op.create_index('ix_return_transactions_account_id', 'return_transactions', ['account_id'])
    op.create_index('ix_returns_company_created', 'return_transactions', ['company_id', 'created_at'])

    op.create_table(
        'return_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_refund_cents', sa.Integer(), nullable=False),
        sa.Column('serial_numbers', sa.JSON(), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_return_lines_quantity_positive'),
        sa.ForeignKeyConstraint(['return_id'], ['return_transactions.id'], name='fk_return_lines_return_id_return_transactions'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_return_lines_product_id_products'),
        sa.ForeignKeyConstraint(['batch_id'], ['inventory_batches.id'], name='fk_return_lines_batch_id_inventory_batches'),
        sa.PrimaryKeyConstraint('id', name='pk_return_lines'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_return_lines_return_id', 'return_lines', ['return_id'])

    # ============================================================================
    # payments: amount tendered per sale (negative for cash refunds)
    # ============================================================================
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('change_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('entry_group_id', sa.String(length=32), nullable=True),
        sa.Column('paid_by', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_payments_company_id_companies'),
        sa.ForeignKeyConstraint(['sale_id'], ['sale_transactions.id'], name='fk_payments_sale_id_sale_transactions'),
        sa.ForeignKeyConstraint(['return_id'], ['return_transactions.id'], name='fk_payments_return_id_return_transactions'),
        sa.ForeignKeyConstraint(['paid_by'], ['entities.id'], name='fk_payments_paid_by_entities'),
        sa.PrimaryKeyConstraint('id', name='pk_payments'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_company_id', 'payments', ['company_id'])
    op.create_index('ix_payments_sale_id', 'payments', ['sale_id'])
    op.create_index('ix_payments_return_id', 'payments', ['return_id'])
    op.create_index('ix_payments_payment_method', 'payments', ['payment_method'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])
    op.create_index('ix_payments_company_created', 'payments', ['company_id', 'created_at'])

    # ============================================================================
    # ledger_entries: append-only, one debit and one credit per entry group
    # ============================================================================
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=False),
        sa.Column('entry_group_id', sa.String(length=32), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('account', sa.String(length=32), nullable=False),
        sa.Column('entry_type', sa.String(length=8), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('linked_entity_id', sa.Integer(), nullable=True),
        sa.Column('account_id', sa.Integer(), nullable=True),
        sa.Column('entry_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint('amount_cents >= 0', name='ck_ledger_entries_amount_non_negative'),
        sa.CheckConstraint("entry_type IN ('debit', 'credit')", name='ck_ledger_entries_entry_type_valid'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_ledger_entries_company_id_companies'),
        sa.ForeignKeyConstraint(['linked_entity_id'], ['entities.id'], name='fk_ledger_entries_linked_entity_id_entities'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_ledger_entries_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_ledger_entries'),
        sa.UniqueConstraint('entry_group_id', 'entry_type', name='uq_ledger_group_side'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_entries_entry_group_id', 'ledger_entries', ['entry_group_id'])
    op.create_index('ix_ledger_entries_company_id', 'ledger_entries', ['company_id'])
    op.create_index('ix_ledger_entries_transaction_type', 'ledger_entries', ['transaction_type'])
    op.create_index('ix_ledger_entries_linked_entity_id', 'ledger_entries', ['linked_entity_id'])
    op.create_index('ix_ledger_entries_account_id', 'ledger_entries', ['account_id'])
    op.create_index('ix_ledger_company_date', 'ledger_entries', ['company_id', 'entry_date'])
    op.create_index('ix_ledger_company_account', 'ledger_entries', ['company_id', 'account'])
    op.create_index('ix_ledger_transaction', 'ledger_entries', ['transaction_id'])

    # ============================================================================
    # document_sequences / audit_events
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_document_sequences_company_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_document_sequences'),
        sa.UniqueConstraint('company_id', 'document_type', name='uq_doc_sequences_company_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_company_id', 'document_sequences', ['company_id'])

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(length=16), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        _timestamp('occurred_at'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], name='fk_audit_events_company_id_companies'),
        sa.PrimaryKeyConstraint('id', name='pk_audit_events'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_events_company_id', 'audit_events', ['company_id'])
    op.create_index('ix_audit_events_action_type', 'audit_events', ['action_type'])
    op.create_index('ix_audit_events_entity_type', 'audit_events', ['entity_type'])
    op.create_index('ix_audit_company_occurred', 'audit_events', ['company_id', 'occurred_at'])


def downgrade():
    """Drop all tables in reverse dependency order."""
    op.drop_table('audit_events')
    op.drop_table('document_sequences')
    op.drop_table('ledger_entries')
    op.drop_table('payments')
    op.drop_table('return_lines')
    op.drop_table('return_transactions')
    op.drop_table('inventory_units')
    op.drop_table('sale_lines')
    op.drop_table('sale_transactions')
    op.drop_table('inventory_batches')
    op.drop_table('inventory_records')
    op.drop_table('products')
    op.drop_table('accounts')
    op.drop_table('entities')
    op.drop_table('companies')
