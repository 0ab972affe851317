"""Balance ledger services for prepaid customer balances."""

import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction

from django_fulfillment.exceptions import (
    FulfillmentError,
    InsufficientFunds,
    NegativeBalanceError,
)
from django_fulfillment.models import BalanceAccount, BalanceTransaction

logger = logging.getLogger(__name__)

TransactionType = BalanceTransaction.TransactionType


def _lock_account(user) -> BalanceAccount:
    """Get the user's balance account, locked for update.

    Must be called inside transaction.atomic().
    """
    BalanceAccount.objects.get_or_create(user=user)
    return BalanceAccount.objects.select_for_update().get(user=user)


def _require_positive(amount: Decimal) -> Decimal:
    amount = Decimal(amount)
    if amount <= 0:
        raise FulfillmentError(f"Amount must be positive, got {amount}")
    return amount


def _record(
    account: BalanceAccount,
    amount: Decimal,
    transaction_type: str,
    description: str,
    related_order=None,
) -> BalanceTransaction:
    account.balance += amount
    account.save(update_fields=['balance', 'updated_at'])
    return BalanceTransaction.objects.create(
        user=account.user,
        amount=amount,
        transaction_type=transaction_type,
        description=description,
        balance_after=account.balance,
        related_order=related_order,
    )


def get_balance(user) -> Decimal:
    """
    Get the current balance of a user.

    Users without a balance account have a balance of zero.
    """
    account = BalanceAccount.objects.filter(user=user).first()
    if account is None:
        return Decimal('0')
    return account.balance


@transaction.atomic
def debit(
    user,
    amount: Decimal,
    description: str,
    related_order=None,
) -> BalanceTransaction:
    """
    Debit a user's balance for an order.

    Locks the user's balance account with select_for_update() so concurrent
    debits and credits for the same user serialize.

    Args:
        user: The customer paying.
        amount: Positive amount to take from the balance.
        description: Transaction description.
        related_order: The order being paid for (optional).

    Returns:
        The order_debit BalanceTransaction (negative amount).

    Raises:
        InsufficientFunds: If the balance is lower than amount.

    Usage:
        txn = debit(user, Decimal('5.00'), "Vote order #12", related_order=order)
    """
    amount = _require_positive(amount)
    account = _lock_account(user)

    if account.balance < amount:
        raise InsufficientFunds(required=amount, available=account.balance)

    txn = _record(account, -amount, TransactionType.ORDER_DEBIT, description, related_order)
    logger.info(f"Debited {amount} from user {user.pk} (balance now {account.balance})")
    return txn


@transaction.atomic
def credit(
    user,
    amount: Decimal,
    description: str,
    related_order=None,
    transaction_type: str = TransactionType.REFUND,
) -> BalanceTransaction:
    """
    Credit a user's balance.

    Args:
        user: The customer receiving the credit.
        amount: Positive amount to add to the balance.
        description: Transaction description.
        related_order: The order the credit belongs to (optional).
        transaction_type: refund (default) or deposit.

    Returns:
        The BalanceTransaction (positive amount).
    """
    amount = _require_positive(amount)
    account = _lock_account(user)

    txn = _record(account, amount, transaction_type, description, related_order)
    logger.info(
        f"Credited {amount} to user {user.pk} ({transaction_type}, balance now {account.balance})"
    )
    return txn


def deposit(user, amount: Decimal, description: str = "Balance top-up") -> BalanceTransaction:
    """Credit funds collected by the payment intake flow."""
    return credit(user, amount, description, transaction_type=TransactionType.DEPOSIT)


@transaction.atomic
def adjust_balance(
    user,
    delta: Optional[Decimal] = None,
    new_balance: Optional[Decimal] = None,
    reason: str = "",
) -> Optional[BalanceTransaction]:
    """
    Adjust a user's balance by hand (operator action).

    Exactly one of delta or new_balance must be given. A transaction is
    recorded only when the balance actually changes.

    Returns:
        The admin_adjustment BalanceTransaction, or None if nothing changed.

    Raises:
        NegativeBalanceError: If the resulting balance would be negative.

    Usage:
        adjust_balance(user, delta=Decimal('-2.50'), reason="Chargeback")
        adjust_balance(user, new_balance=Decimal('100'), reason="Migration")
    """
    if (delta is None) == (new_balance is None):
        raise FulfillmentError("Provide exactly one of delta or new_balance")

    account = _lock_account(user)

    if delta is not None:
        delta = Decimal(delta)
        target = account.balance + delta
    else:
        target = Decimal(new_balance)
        delta = target - account.balance

    if target < 0:
        raise NegativeBalanceError(f"Balance cannot be negative (would be {target})")

    if delta == 0:
        return None

    reason = reason.strip()
    description = f"Admin adjustment: {reason}" if reason else "Admin adjustment"
    txn = _record(account, delta, TransactionType.ADMIN_ADJUSTMENT, description)
    logger.info(f"Adjusted balance of user {user.pk} by {delta} (balance now {account.balance})")
    return txn
