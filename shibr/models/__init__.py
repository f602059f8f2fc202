"""Database models."""
from shibr.models.user import User, AccountType, Language
from shibr.models.shelf import Branch, Shelf, ShelfStatus
from shibr.models.product import Product
from shibr.models.rental import (
    RentalRequest, RentalProduct, RentalClearance, Review,
    RentalStatus, ClearanceStatus,
)
from shibr.models.chat import (
    Conversation, Message, Notification,
    ConversationStatus, MessageType, NotificationType,
)
from shibr.models.order import (
    CustomerOrder, CustomerOrderItem, Payment,
    OrderStatus, PaymentMethod, PaymentStatus, PaymentType, TransferStatus,
)
from shibr.models.platform import PlatformSetting, VerificationOTP, OTPPurpose

__all__ = [
    "User", "AccountType", "Language",
    "Branch", "Shelf", "ShelfStatus",
    "Product",
    "RentalRequest", "RentalProduct", "RentalClearance", "Review",
    "RentalStatus", "ClearanceStatus",
    "Conversation", "Message", "Notification",
    "ConversationStatus", "MessageType", "NotificationType",
    "CustomerOrder", "CustomerOrderItem", "Payment",
    "OrderStatus", "PaymentMethod", "PaymentStatus", "PaymentType", "TransferStatus",
    "PlatformSetting", "VerificationOTP", "OTPPurpose",
]
