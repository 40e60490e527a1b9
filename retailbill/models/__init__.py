"""SQLAlchemy models. Importing this package registers every table on Base.metadata."""
from retailbill.models.tenant import Tenant, TenantStatus, SystemConfiguration, TenantConfiguration
from retailbill.models.security_group import SecurityGroup, UserSecurityGroup
from retailbill.models.customer import Customer, Supplier
from retailbill.models.inventory import Product, Stock, StockMovement, MovementType, AdjustmentType
from retailbill.models.invoice import (
    Invoice, InvoiceItem, Payment, HeldInvoice,
    InvoiceStatus, PaymentMode, DiscountType,
)
from retailbill.models.offer import Offer, OfferType, OfferStatus
from retailbill.models.gst import GstRate
from retailbill.models.recurring import RecurringInvoice, RecurringFrequency
from retailbill.models.credit_note import (
    CreditNote, CreditNoteItem, CreditNoteStatus, CreditNoteReason, ApplicationMethod,
)
from retailbill.models.quote import Quote, QuoteItem, QuoteStatus
from retailbill.models.document_sequence import DocumentSequence, DocumentType
from retailbill.models.side_effect import PendingSideEffect, SideEffectType, SideEffectStatus
from retailbill.models.webhook import Webhook

__all__ = [
    "Tenant", "TenantStatus", "SystemConfiguration", "TenantConfiguration",
    "SecurityGroup", "UserSecurityGroup",
    "Customer", "Supplier",
    "Product", "Stock", "StockMovement", "MovementType", "AdjustmentType",
    "Invoice", "InvoiceItem", "Payment", "HeldInvoice",
    "InvoiceStatus", "PaymentMode", "DiscountType",
    "Offer", "OfferType", "OfferStatus",
    "GstRate",
    "RecurringInvoice", "RecurringFrequency",
    "CreditNote", "CreditNoteItem", "CreditNoteStatus", "CreditNoteReason", "ApplicationMethod",
    "Quote", "QuoteItem", "QuoteStatus",
    "DocumentSequence", "DocumentType",
    "PendingSideEffect", "SideEffectType", "SideEffectStatus",
    "Webhook",
]
