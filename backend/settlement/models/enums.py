from enum import Enum


class OrderStatus(str, Enum):
    open = "open"
    partial = "partial"
    paid = "paid"
    # Lo pone el despacho externo; el motor no lo interpreta
    awaiting_confirmation = "awaiting_confirmation"


class DiscountType(str, Enum):
    fixed = "fixed"
    percentage = "percentage"


class PaymentMethod(str, Enum):
    cash = "cash"
    pix = "pix"
    transfer = "transfer"
    check = "check"
    third_party_check = "third_party_check"
    credit_card = "credit_card"
    debit_card = "debit_card"
    bank_slip = "bank_slip"
    goods_exchange = "goods_exchange"


class CreditStatus(str, Enum):
    available = "available"
    used = "used"


class CreditGeneration(str, Enum):
    automatic = "automatic"
    manual = "manual"


class PendingStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class SubmitterType(str, Enum):
    representative = "representative"
    customer = "customer"
    operator = "operator"


class RecordKind(str, Enum):
    direct = "direct"
    approved = "approved"
