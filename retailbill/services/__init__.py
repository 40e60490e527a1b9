# Services module
from retailbill.services.configuration_service import ConfigurationService
from retailbill.services.document_sequence_service import DocumentSequenceService
from retailbill.services.security_group_service import SecurityGroupService
from retailbill.services.tenant_service import TenantService
from retailbill.services.customer_service import CustomerService, SupplierService
from retailbill.services.inventory_service import InventoryService
from retailbill.services.side_effect_service import SideEffectService
from retailbill.services.gst_service import GstService
from retailbill.services.offer_service import OfferService
from retailbill.services.invoice_service import InvoiceService
from retailbill.services.credit_note_service import CreditNoteService
from retailbill.services.quote_service import QuoteService
from retailbill.services.recurring_invoice_service import RecurringInvoiceService
from retailbill.services.webhook_service import WebhookService

__all__ = [
    "ConfigurationService",
    "DocumentSequenceService",
    "SecurityGroupService",
    "TenantService",
    "CustomerService",
    "SupplierService",
    "InventoryService",
    "SideEffectService",
    "GstService",
    "OfferService",
    "InvoiceService",
    "CreditNoteService",
    "QuoteService",
    "RecurringInvoiceService",
    "WebhookService",
]
