from bananary.models.user import User
from bananary.models.charge_order import ChargeOrder
from bananary.models.credit_transaction import CreditTransaction
from bananary.models.history_item import HistoryItem
from bananary.models.verification_code import VerificationCode
from bananary.models.system_config import SystemConfig

__all__ = [
    "User", "ChargeOrder", "CreditTransaction",
    "HistoryItem", "VerificationCode", "SystemConfig"
]
