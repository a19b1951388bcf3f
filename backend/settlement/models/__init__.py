from .tenant import Tenant
from .user import User
from .customer import Customer
from .folio_counter import FolioCounter
from .order import Order, Deposit, SettlementHistory
from .credit import Credit
from .pending_settlement import PendingSettlement
from .settlement_record import SettlementRecord
from .status_history import StatusHistory
from .notification import Notification

__all__ = [
    "Tenant",
    "User",
    "Customer",
    "FolioCounter",
    "Order",
    "Deposit",
    "SettlementHistory",
    "Credit",
    "PendingSettlement",
    "SettlementRecord",
    "StatusHistory",
    "Notification",
]
