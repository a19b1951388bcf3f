"""
Errores de dominio del motor de liquidación.

Los servicios lanzan estas excepciones; create_app registra un handler que
las convierte en respuestas JSON con el status_code de cada clase.
"""


class SettlementError(ValueError):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidPaymentAmount(SettlementError):
    """Non-positive or unparsable tender."""


class MalformedSettlementRequest(SettlementError):
    """Missing order, payment method or otherwise inconsistent request."""


class AttachmentRequired(MalformedSettlementRequest):
    pass


class InsufficientCreditRequested(SettlementError):
    def __init__(self, requested, available):
        super().__init__(
            f"Requested credit {requested} exceeds available credit {available}"
        )
        self.requested = requested
        self.available = available


class ApprovalPreconditionFailed(SettlementError):
    pass


class RejectionReasonRequired(SettlementError):
    def __init__(self, detail: str = "A rejection reason is required"):
        super().__init__(detail)


class InvalidStateTransition(SettlementError):
    status_code = 409


class ConcurrentModification(SettlementError):
    status_code = 409


class DepositExceedsOrderValue(SettlementError):
    """Soft limit: the caller must confirm before the deposit is stored."""

    status_code = 409


class DepositLocked(SettlementError):
    status_code = 409


class CreditImmutable(SettlementError):
    status_code = 409


class SettlementRecordImmutable(SettlementError):
    status_code = 409
