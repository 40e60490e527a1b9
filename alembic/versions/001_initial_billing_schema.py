"""Create retail billing schema

Revision ID: 001_billing
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_billing'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create tenant, master data, billing and integration tables"""

    # ====================
    # TENANTS
    # ====================
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), server_default='ACTIVE', nullable=False),
        sa.Column('gstin', sa.String(15), nullable=True),
        sa.Column('state', sa.String(50), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)

    op.create_table(
        'system_configurations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('config_key', sa.String(150), nullable=False),
        sa.Column('config_value', sa.Text, nullable=True),
        sa.Column('value_type', sa.String(20), server_default='STRING', nullable=False),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('is_editable', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_system_configurations_config_key', 'system_configurations', ['config_key'], unique=True)
    op.create_index('ix_system_configurations_category', 'system_configurations', ['category'])

    op.create_table(
        'tenant_configurations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('config_key', sa.String(150), nullable=False),
        sa.Column('config_value', sa.Text, nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'config_key', name='uq_tenant_config_key'),
    )
    op.create_index('ix_tenant_configurations_tenant_id', 'tenant_configurations', ['tenant_id'])

    # ====================
    # SECURITY GROUPS
    # ====================
    op.create_table(
        'security_groups',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('permission_codes', sa.JSON, nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_by', sa.String(50), nullable=True),
        sa.Column('updated_by', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'name', name='uq_security_group_tenant_name'),
    )
    op.create_index('ix_security_groups_tenant_id', 'security_groups', ['tenant_id'])
    op.create_index('ix_security_groups_is_active', 'security_groups', ['is_active'])

    op.create_table(
        'user_security_groups',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(50), nullable=False),
        sa.Column('security_group_id', sa.Uuid(),
                  sa.ForeignKey('security_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_by', sa.String(50), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'security_group_id', name='uq_user_security_group'),
    )
    op.create_index('ix_user_security_groups_tenant_id', 'user_security_groups', ['tenant_id'])
    op.create_index('ix_user_security_groups_user_id', 'user_security_groups', ['user_id'])
    op.create_index('ix_user_security_groups_security_group_id', 'user_security_groups', ['security_group_id'])

    # ====================
    # CUSTOMERS & SUPPLIERS
    # ====================
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('gstin', sa.String(15), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(50), nullable=True),
        sa.Column('pincode', sa.String(10), nullable=True),
        sa.Column('wallet_balance', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('loyalty_points', sa.Integer, server_default='0', nullable=False),
        sa.Column('total_spent', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('visit_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('last_visit_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'phone', name='uq_customer_tenant_phone'),
    )
    op.create_index('ix_customers_tenant_id', 'customers', ['tenant_id'])
    op.create_index('ix_customers_name', 'customers', ['name'])

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('contact_person', sa.String(200), nullable=True),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('gstin', sa.String(15), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(50), nullable=True),
        sa.Column('pincode', sa.String(10), nullable=True),
        sa.Column('payment_terms_days', sa.Integer, server_default='30', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_suppliers_tenant_id', 'suppliers', ['tenant_id'])
    op.create_index('ix_suppliers_name', 'suppliers', ['name'])

    # ====================
    # PRODUCTS & STOCK
    # ====================
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(300), nullable=False),
        sa.Column('sku', sa.String(50), nullable=False),
        sa.Column('barcode', sa.String(50), nullable=True),
        sa.Column('category_id', sa.String(50), nullable=True),
        sa.Column('hsn_code', sa.String(20), nullable=True),
        sa.Column('sac_code', sa.String(20), nullable=True),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('reorder_level', sa.Integer, server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'sku', name='uq_product_tenant_sku'),
    )
    op.create_index('ix_products_tenant_id', 'products', ['tenant_id'])
    op.create_index('ix_products_barcode', 'products', ['barcode'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])

    op.create_table(
        'stocks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location_id', sa.String(50), nullable=False),
        sa.Column('quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('reserved_quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('product_id', 'location_id', name='uq_stock_product_location'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_quantity_non_negative'),
    )
    op.create_index('ix_stocks_tenant_id', 'stocks', ['tenant_id'])
    op.create_index('ix_stocks_product_id', 'stocks', ['product_id'])
    op.create_index('ix_stocks_location_id', 'stocks', ['location_id'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location_id', sa.String(50), nullable=False),
        sa.Column('movement_type', sa.String(20), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('previous_quantity', sa.Integer, nullable=False),
        sa.Column('new_quantity', sa.Integer, nullable=False),
        sa.Column('reference_type', sa.String(30), nullable=True),
        sa.Column('reference_id', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('performed_by', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_stock_movements_tenant_id', 'stock_movements', ['tenant_id'])
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_id'])
    op.create_index('ix_stock_movements_reference_id', 'stock_movements', ['reference_id'])

    # ====================
    # GST RATES & OFFERS
    # ====================
    op.create_table(
        'gst_rates',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('hsn_code', sa.String(20), nullable=True),
        sa.Column('sac_code', sa.String(20), nullable=True),
        sa.Column('tax_category', sa.String(50), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('cgst_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('sgst_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('igst_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('cess_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('effective_from', sa.Date, nullable=False),
        sa.Column('effective_to', sa.Date, nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_gst_rates_tenant_id', 'gst_rates', ['tenant_id'])
    op.create_index('ix_gst_rates_hsn_code', 'gst_rates', ['hsn_code'])
    op.create_index('ix_gst_rates_sac_code', 'gst_rates', ['sac_code'])
    op.create_index('ix_gst_rates_tax_category', 'gst_rates', ['tax_category'])

    op.create_table(
        'offers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('offer_type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False),
        sa.Column('discount_value', sa.Numeric(14, 2), nullable=False),
        sa.Column('minimum_purchase_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('maximum_discount_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('valid_to', sa.DateTime(timezone=True), nullable=False),
        sa.Column('usage_limit', sa.Integer, nullable=True),
        sa.Column('usage_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('applicable_product_ids', sa.JSON, nullable=True),
        sa.Column('applicable_category_ids', sa.JSON, nullable=True),
        sa.Column('is_stackable', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('priority', sa.Integer, server_default='0', nullable=False),
        sa.Column('created_by', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            'usage_limit IS NULL OR usage_count <= usage_limit',
            name='ck_offer_usage_within_limit',
        ),
    )
    op.create_index('ix_offers_tenant_id', 'offers', ['tenant_id'])

    # ====================
    # INVOICES
    # ====================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_number', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False),
        sa.Column('store_id', sa.String(50), nullable=False),
        sa.Column('counter_id', sa.String(50), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_name', sa.String(200), nullable=True),
        sa.Column('customer_phone', sa.String(20), nullable=True),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('discount_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('paid_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('balance_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total_cgst', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total_sgst', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total_igst', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total_cess', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('place_of_supply', sa.String(50), nullable=True),
        sa.Column('supplier_gstin', sa.String(15), nullable=True),
        sa.Column('customer_gstin', sa.String(15), nullable=True),
        sa.Column('reverse_charge', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('is_interstate', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(50), nullable=False),
        sa.Column('completed_by', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_invoices_tenant_id', 'invoices', ['tenant_id'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_tenant_number', 'invoices', ['tenant_id', 'invoice_number'], unique=True)
    op.create_index('ix_invoices_tenant_status', 'invoices', ['tenant_id', 'status'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('invoice_id', sa.Uuid(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer, server_default='1', nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('product_name', sa.String(300), nullable=False),
        sa.Column('product_code', sa.String(50), nullable=True),
        sa.Column('barcode', sa.String(50), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('discount_type', sa.String(20), nullable=True),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=True),
        sa.Column('tax_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('line_total', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('hsn_code', sa.String(20), nullable=True),
        sa.Column('sac_code', sa.String(20), nullable=True),
        sa.Column('cgst_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('sgst_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('igst_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('cess_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('cgst_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('sgst_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('igst_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('cess_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
    )
    op.create_index('ix_invoice_items_tenant_id', 'invoice_items', ['tenant_id'])
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('invoice_id', sa.Uuid(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('mode', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('reference_number', sa.String(100), nullable=True),
        sa.Column('card_last4', sa.String(4), nullable=True),
        sa.Column('upi_id', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_payments_tenant_id', 'payments', ['tenant_id'])
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])

    op.create_table(
        'held_invoices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('store_id', sa.String(50), nullable=False),
        sa.Column('counter_id', sa.String(50), nullable=False),
        sa.Column('hold_reference', sa.String(20), nullable=False),
        sa.Column('invoice_data', sa.JSON, nullable=False),
        sa.Column('held_by', sa.String(50), nullable=False),
        sa.Column('held_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
    )
    op.create_index('ix_held_invoices_tenant_id', 'held_invoices', ['tenant_id'])
    op.create_index('ix_held_invoices_hold_reference', 'held_invoices', ['hold_reference'], unique=True)

    # ====================
    # CREDIT NOTES
    # ====================
    op.create_table(
        'credit_notes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('credit_note_number', sa.String(50), nullable=False),
        sa.Column('invoice_id', sa.Uuid(), sa.ForeignKey('invoices.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('invoice_number', sa.String(50), nullable=True),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('customer_name', sa.String(200), nullable=True),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False),
        sa.Column('reason', sa.String(30), nullable=False),
        sa.Column('reason_description', sa.Text, nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('restock_items', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('application_method', sa.String(20), server_default='REDUCE_INVOICE', nullable=False),
        sa.Column('refund_reference', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(50), nullable=False),
        sa.Column('updated_by', sa.String(50), nullable=True),
        sa.Column('approved_by', sa.String(50), nullable=True),
        sa.Column('approval_notes', sa.Text, nullable=True),
        sa.Column('cancel_reason', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_credit_notes_tenant_id', 'credit_notes', ['tenant_id'])
    op.create_index('ix_credit_notes_invoice_id', 'credit_notes', ['invoice_id'])
    op.create_index('ix_credit_notes_customer_id', 'credit_notes', ['customer_id'])
    op.create_index('ix_credit_notes_status', 'credit_notes', ['status'])
    op.create_index('ix_credit_notes_tenant_number', 'credit_notes',
                    ['tenant_id', 'credit_note_number'], unique=True)

    op.create_table(
        'credit_note_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('credit_note_id', sa.Uuid(),
                  sa.ForeignKey('credit_notes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invoice_item_id', sa.Uuid(), nullable=True),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('product_name', sa.String(300), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_percentage', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('subtotal', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('restock', sa.Boolean, server_default=sa.false(), nullable=False),
    )
    op.create_index('ix_credit_note_items_tenant_id', 'credit_note_items', ['tenant_id'])
    op.create_index('ix_credit_note_items_credit_note_id', 'credit_note_items', ['credit_note_id'])

    # ====================
    # QUOTES
    # ====================
    op.create_table(
        'quotes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quote_number', sa.String(50), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False),
        sa.Column('quote_date', sa.Date, nullable=False),
        sa.Column('valid_until', sa.Date, nullable=False),
        sa.Column('subtotal', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('discount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('terms', sa.Text, nullable=True),
        sa.Column('payment_term_days', sa.Integer, nullable=True),
        sa.Column('converted_invoice_id', sa.Uuid(), nullable=True),
        sa.Column('converted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_quotes_tenant_id', 'quotes', ['tenant_id'])
    op.create_index('ix_quotes_customer_id', 'quotes', ['customer_id'])
    op.create_index('ix_quotes_status', 'quotes', ['status'])
    op.create_index('ix_quotes_tenant_number', 'quotes', ['tenant_id', 'quote_number'], unique=True)

    op.create_table(
        'quote_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quote_id', sa.Uuid(), sa.ForeignKey('quotes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('product_name', sa.String(300), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total', sa.Numeric(14, 2), server_default='0', nullable=False),
    )
    op.create_index('ix_quote_items_quote_id', 'quote_items', ['quote_id'])

    # ====================
    # RECURRING, SEQUENCES, OUTBOX, WEBHOOKS
    # ====================
    op.create_table(
        'recurring_invoices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=True),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('customer_phone', sa.String(20), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('store_id', sa.String(50), server_default='MAIN', nullable=False),
        sa.Column('counter_id', sa.String(50), server_default='AUTO', nullable=False),
        sa.Column('frequency', sa.String(20), nullable=False),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=True),
        sa.Column('next_invoice_date', sa.Date, nullable=False),
        sa.Column('last_invoice_date', sa.Date, nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), server_default='0', nullable=False),
        sa.Column('payment_terms', sa.String(50), server_default='Net 30', nullable=False),
        sa.Column('late_fee_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('late_fee_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('grace_period_days', sa.Integer, server_default='0', nullable=False),
        sa.Column('auto_email', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('invoices_generated', sa.Integer, server_default='0', nullable=False),
        sa.Column('max_invoices', sa.Integer, nullable=True),
        sa.Column('created_by', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_recurring_invoices_tenant_id', 'recurring_invoices', ['tenant_id'])
    op.create_index('ix_recurring_invoices_customer_id', 'recurring_invoices', ['customer_id'])
    op.create_index('ix_recurring_due', 'recurring_invoices', ['tenant_id', 'is_active', 'next_invoice_date'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('document_type', sa.String(10), nullable=False),
        sa.Column('period', sa.String(10), nullable=False),
        sa.Column('current_number', sa.Integer, server_default='0', nullable=False),
        sa.Column('padding_length', sa.Integer, server_default='4', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('tenant_id', 'document_type', 'period',
                            name='uq_document_sequence_tenant_type_period'),
    )
    op.create_index('ix_document_sequences_tenant_id', 'document_sequences', ['tenant_id'])

    op.create_table(
        'pending_side_effects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('effect_type', sa.String(30), nullable=False),
        sa.Column('payload', sa.JSON, nullable=False),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('attempts', sa.Integer, server_default='1', nullable=False),
        sa.Column('last_error', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_pending_side_effects_tenant_id', 'pending_side_effects', ['tenant_id'])
    op.create_index('ix_pending_side_effects_reference', 'pending_side_effects', ['reference'])
    op.create_index('ix_pending_side_effects_status', 'pending_side_effects', ['tenant_id', 'status'])

    op.create_table(
        'webhooks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('target_url', sa.String(500), nullable=False),
        sa.Column('http_method', sa.String(10), server_default='POST', nullable=False),
        sa.Column('headers', sa.JSON, nullable=True),
        sa.Column('secret_key', sa.String(255), nullable=True),
        sa.Column('payload_template', sa.Text, nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('retry_count', sa.Integer, server_default='3', nullable=False),
        sa.Column('success_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('failure_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('last_triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_webhooks_tenant_id', 'webhooks', ['tenant_id'])
    op.create_index('ix_webhooks_event_type', 'webhooks', ['event_type'])


def downgrade():
    """Drop all billing tables"""
    op.drop_table('webhooks')
    op.drop_table('pending_side_effects')
    op.drop_table('document_sequences')
    op.drop_table('recurring_invoices')
    op.drop_table('quote_items')
    op.drop_table('quotes')
    op.drop_table('credit_note_items')
    op.drop_table('credit_notes')
    op.drop_table('held_invoices')
    op.drop_table('payments')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('offers')
    op.drop_table('gst_rates')
    op.drop_table('stock_movements')
    op.drop_table('stocks')
    op.drop_table('products')
    op.drop_table('suppliers')
    op.drop_table('customers')
    op.drop_table('user_security_groups')
    op.drop_table('security_groups')
    op.drop_table('tenant_configurations')
    op.drop_table('system_configurations')
    op.drop_table('tenants')
