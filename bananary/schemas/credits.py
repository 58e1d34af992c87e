# /bananary/schemas/credits.py
from decimal import Decimal
from typing import List, Optional
from pydantic import Field

from bananary.schemas.common import ApiModel, ApiResponse, Pagination


class CreditTransactionItem(ApiModel):
    id: int
    user_id: str
    type: str
    amount: int
    balance: int
    description: str
    order_id: Optional[str] = None
    created_at: str


class TransactionsResponse(ApiResponse):
    data: List[CreditTransactionItem]
    pagination: Pagination


class BalanceResponse(ApiResponse):
    balance: int
    credits: int


class ConsumeRequest(ApiModel):
    amount: int = Field(gt=0)
    description: Optional[str] = None
    ref_id: Optional[str] = Field(default=None, max_length=64)


class ChargePackage(ApiModel):
    id: str
    price: int
    credits: int
    popular: bool = False


class PackagesResponse(ApiResponse):
    packages: List[ChargePackage]
    credits_per_unit: int
    min_amount: int


class ChargeRequest(ApiModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    # Derived from amount when omitted
    credits: Optional[int] = Field(default=None, gt=0)
    payment_method: str = "mock"


class OrderItem(ApiModel):
    id: str
    amount: float
    credits: int
    payment_method: str
    status: str
    created_at: str
    paid_at: Optional[str] = None


class ChargeResponse(ApiResponse):
    order_id: str
    order: OrderItem
    balance: Optional[int] = None
    payment_url: Optional[str] = None


class OrderResponse(ApiResponse):
    order: OrderItem


class CompleteOrderResponse(OrderResponse):
    credits_added: int
    balance: int
