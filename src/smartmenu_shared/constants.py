"""
Application constants and enums.
"""

from enum import Enum

class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    CLEANING = "cleaning"
    OUT_OF_SERVICE = "out_of_service"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}

class TableOrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    CLOSED = "closed"

class OrderType(str, Enum):
    DINE_IN = "dine_in"
    TAKEOUT = "takeout"
    DELIVERY = "delivery"

class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    WHATSAPP = "whatsapp"

class WhatsAppTokenStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"

class QRCodeType(str, Enum):
    TABLE = "table"
    AREA = "area"
    GENERAL = "general"
    CAMPAIGN = "campaign"

class CustomerStatus(str, Enum):
    ACTIVE = "active"
    AT_RISK = "at-risk"
    LOST = "lost"

class LoyaltyTier(str, Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"

class Roles(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    STAFF = "staff"

    @classmethod
    def is_admin(cls, role: str) -> bool:
        return role in {cls.OWNER.value, cls.ADMIN.value}

# Tables in these states refuse QR scans and cart activity.
BLOCKED_TABLE_STATUSES = {
    TableStatus.CLEANING,
    TableStatus.OUT_OF_SERVICE,
}

# (from, to) -> who may trigger it. "system" covers transitions done by the
# order flow itself (placing an order, closing a table order).
TABLE_STATUS_TRANSITIONS = {
    (TableStatus.AVAILABLE, TableStatus.OCCUPIED): {"staff", "system"},
    (TableStatus.AVAILABLE, TableStatus.RESERVED): {"staff"},
    (TableStatus.AVAILABLE, TableStatus.CLEANING): {"staff"},
    (TableStatus.AVAILABLE, TableStatus.OUT_OF_SERVICE): {"staff"},
    (TableStatus.RESERVED, TableStatus.AVAILABLE): {"staff"},
    (TableStatus.RESERVED, TableStatus.OCCUPIED): {"staff", "system"},
    (TableStatus.OCCUPIED, TableStatus.AVAILABLE): {"staff", "system"},
    (TableStatus.OCCUPIED, TableStatus.CLEANING): {"staff", "system"},
    (TableStatus.OCCUPIED, TableStatus.OUT_OF_SERVICE): {"staff"},
    (TableStatus.CLEANING, TableStatus.AVAILABLE): {"staff", "system"},
    (TableStatus.CLEANING, TableStatus.OUT_OF_SERVICE): {"staff"},
    (TableStatus.OUT_OF_SERVICE, TableStatus.AVAILABLE): {"staff"},
    (TableStatus.OUT_OF_SERVICE, TableStatus.CLEANING): {"staff"},
}

ACTIVE_TABLE_ORDER_STATUSES = {
    TableOrderStatus.PENDING,
    TableOrderStatus.PROCESSED,
}

# Unambiguous alphabet: no I, O, 0 or 1.
WHATSAPP_TOKEN_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
WHATSAPP_TOKEN_LENGTH = 8
WHATSAPP_TOKEN_MAX_ATTEMPTS = 5

CUSTOMER_EVENT_TYPES = {
    "menu_view",
    "product_view",
    "add_to_cart",
    "remove_from_cart",
    "order_placed",
    "whatsapp_click",
    "popup_view",
    "popup_click",
}

MAX_CART_ITEM_QUANTITY = 99
MAX_IDEMPOTENCY_KEY_LENGTH = 128
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
