"""
Request Withdrawal Handler.
POST /withdrawals
Body: { "amount": 50, "payment_method": "easypaisa" | "jazzcash" | "bank",
        "payment_details": "account title / number" }
"""
from gigwork.shared.access import load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import RequestWithdrawalCommand
from gigwork.shared.utils import api_handler, format_response, parse_body
from gigwork.shared.withdrawals import available_balance, request_withdrawal


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    command = RequestWithdrawalCommand.from_body(parse_body(event))
    withdrawal = request_withdrawal(backend, actor, command)

    return format_response(201, {
        'message': 'Withdrawal requested',
        'withdrawal': withdrawal,
        'availableBalance': available_balance(backend, actor['id'])
    })
