"""
Withdrawal requests and settlement.

``total_earnings`` never decreases. What a worker can still withdraw is
derived: earnings minus every pending or approved withdrawal. Rejecting a
withdrawal therefore frees its amount without touching the profile.
"""
from decimal import Decimal
from typing import Iterable

from .access import is_admin, require_admin, require_approved_worker
from .commands import RequestWithdrawalCommand, SettleWithdrawalCommand, normalize_decision
from .errors import (
    ConditionFailedError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
)
from .logging import logger
from .models import PROFILES, WITHDRAWALS, Decision, WithdrawalStatus
from .store import PutOp, UpdateOp, new_id
from .utils import now_iso

# Optimistic retries when another request for the same worker commits first
MAX_REQUEST_ATTEMPTS = 3


def compute_available_balance(profile: dict, withdrawals: Iterable[dict]) -> Decimal:
    reserved = sum(
        (Decimal(str(w['amount'])) for w in withdrawals
         if w.get('status') in WithdrawalStatus.RESERVING),
        Decimal('0')
    )
    return Decimal(str(profile.get('total_earnings', 0))) - reserved


def available_balance(backend, worker_id: str) -> Decimal:
    profile = backend.store.get(PROFILES, worker_id)
    if profile is None:
        raise NotFoundError('User not found')
    withdrawals = backend.store.query(WITHDRAWALS, {'worker_id': worker_id})
    return compute_available_balance(profile, withdrawals)


def list_withdrawals(backend, actor: dict, status: str = None) -> list:
    filters = {}
    if not is_admin(actor):
        require_approved_worker(actor)
        filters['worker_id'] = actor['id']
    if status:
        filters['status'] = status
    return backend.store.query(WITHDRAWALS, filters, order_by='requested_at', descending=True)


def request_withdrawal(backend, actor: dict, command: RequestWithdrawalCommand) -> dict:
    """
    Reserve part of the available balance for a payout.

    The insert is committed together with a bump of the profile's
    ``withdrawal_version``, conditioned on the version the balance was
    computed from, so two concurrent requests cannot both spend it.
    """
    require_approved_worker(actor)
    command.validate(backend.config)
    worker_id = actor['id']

    for attempt in range(1, MAX_REQUEST_ATTEMPTS + 1):
        profile = backend.store.get(PROFILES, worker_id)
        if profile is None:
            raise NotFoundError('User not found')
        withdrawals = backend.store.query(WITHDRAWALS, {'worker_id': worker_id})
        balance = compute_available_balance(profile, withdrawals)
        if command.amount > balance:
            raise InsufficientBalanceError(
                f'Requested {command.amount} exceeds available balance {balance}'
            )

        withdrawal = {
            'id': new_id(),
            'worker_id': worker_id,
            'amount': command.amount,
            'payment_method': command.payment_method,
            'payment_details': command.payment_details.strip(),
            'status': WithdrawalStatus.PENDING,
            'requested_at': now_iso(),
        }
        version = profile.get('withdrawal_version', 0)
        try:
            backend.store.transact([
                PutOp(WITHDRAWALS, withdrawal),
                UpdateOp(PROFILES, worker_id, add={'withdrawal_version': 1},
                         expected={'withdrawal_version': version}),
            ])
        except ConditionFailedError:
            logger.warning(f"Withdrawal request for {worker_id} raced (attempt {attempt})")
            continue

        logger.info(f"Worker {worker_id} requested withdrawal {withdrawal['id']} of {command.amount}")
        return withdrawal

    raise InvalidStateError('Balance changed while requesting; please retry')


def settle_withdrawal(backend, actor: dict, command: SettleWithdrawalCommand) -> dict:
    """Approve or reject a pending withdrawal. Earnings are left untouched."""
    require_admin(actor)
    command.validate(backend.config)
    decision = normalize_decision(command.decision)

    withdrawal = backend.store.get(WITHDRAWALS, command.withdrawal_id)
    if withdrawal is None:
        raise NotFoundError('Withdrawal not found')
    if withdrawal['status'] != WithdrawalStatus.PENDING:
        raise InvalidStateError(f"Withdrawal already {withdrawal['status']}")

    new_status = WithdrawalStatus.APPROVED if decision == Decision.APPROVE else WithdrawalStatus.REJECTED
    try:
        withdrawal = backend.store.update(
            WITHDRAWALS, command.withdrawal_id,
            set_fields={'status': new_status, 'processed_at': now_iso()},
            expected={'status': WithdrawalStatus.PENDING}
        )
    except ConditionFailedError:
        raise InvalidStateError('Withdrawal was settled concurrently')

    logger.info(f"Withdrawal {command.withdrawal_id} {new_status} by {actor['id']}")
    return withdrawal
