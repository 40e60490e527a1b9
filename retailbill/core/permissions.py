from enum import Enum
from typing import Iterable, Set


class Permission(str, Enum):
    """Permissions grantable through security groups."""
    # User management
    USER_VIEW = "USER_VIEW"
    USER_CREATE = "USER_CREATE"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"

    # Product management
    PRODUCT_VIEW = "PRODUCT_VIEW"
    PRODUCT_CREATE = "PRODUCT_CREATE"
    PRODUCT_UPDATE = "PRODUCT_UPDATE"
    PRODUCT_DELETE = "PRODUCT_DELETE"

    # Inventory
    INVENTORY_VIEW = "INVENTORY_VIEW"
    INVENTORY_UPDATE = "INVENTORY_UPDATE"
    STOCK_ADJUSTMENT = "STOCK_ADJUSTMENT"

    # Customers
    CUSTOMER_VIEW = "CUSTOMER_VIEW"
    CUSTOMER_CREATE = "CUSTOMER_CREATE"
    CUSTOMER_UPDATE = "CUSTOMER_UPDATE"
    CUSTOMER_DELETE = "CUSTOMER_DELETE"

    # Invoices and payments
    INVOICE_VIEW = "INVOICE_VIEW"
    INVOICE_CREATE = "INVOICE_CREATE"
    INVOICE_UPDATE = "INVOICE_UPDATE"
    INVOICE_DELETE = "INVOICE_DELETE"
    INVOICE_VOID = "INVOICE_VOID"
    PAYMENT_VIEW = "PAYMENT_VIEW"
    PAYMENT_CREATE = "PAYMENT_CREATE"
    PAYMENT_REFUND = "PAYMENT_REFUND"

    # Reports
    REPORT_VIEW = "REPORT_VIEW"
    REPORT_EXPORT = "REPORT_EXPORT"

    # Offers
    OFFER_VIEW = "OFFER_VIEW"
    OFFER_CREATE = "OFFER_CREATE"
    OFFER_UPDATE = "OFFER_UPDATE"
    OFFER_DELETE = "OFFER_DELETE"

    # Suppliers
    SUPPLIER_VIEW = "SUPPLIER_VIEW"
    SUPPLIER_CREATE = "SUPPLIER_CREATE"
    SUPPLIER_UPDATE = "SUPPLIER_UPDATE"
    SUPPLIER_DELETE = "SUPPLIER_DELETE"

    # Notifications
    NOTIFICATION_VIEW = "NOTIFICATION_VIEW"
    NOTIFICATION_SEND = "NOTIFICATION_SEND"

    # Settings
    SETTINGS_VIEW = "SETTINGS_VIEW"
    SETTINGS_UPDATE = "SETTINGS_UPDATE"

    # Security groups
    SECURITY_GROUP_VIEW = "SECURITY_GROUP_VIEW"
    SECURITY_GROUP_CREATE = "SECURITY_GROUP_CREATE"
    SECURITY_GROUP_UPDATE = "SECURITY_GROUP_UPDATE"
    SECURITY_GROUP_DELETE = "SECURITY_GROUP_DELETE"


class PermissionChecker:
    """
    Permission checker for the current user.

    Built from the union of permissions of the user's active security groups.
    """

    def __init__(self, user_id: str, user_permissions: Iterable[Permission]):
        self.user_id = user_id
        self.permissions: Set[Permission] = {Permission(p) for p in user_permissions}

    def has_permission(self, permission: Permission) -> bool:
        return Permission(permission) in self.permissions

    def has_any_permission(self, permissions: Iterable[Permission]) -> bool:
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: Iterable[Permission]) -> bool:
        return all(self.has_permission(p) for p in permissions)
