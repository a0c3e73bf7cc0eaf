"""
Settle Withdrawal Handler (admin).
POST /admin/withdrawals/{withdrawalId}/settle
Body: { "decision": "approve" | "reject" }
"""
from gigwork.shared.access import load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import SettleWithdrawalCommand
from gigwork.shared.utils import api_handler, format_response, get_path_param, parse_body
from gigwork.shared.withdrawals import settle_withdrawal


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    command = SettleWithdrawalCommand.from_body(get_path_param(event, 'withdrawalId'), parse_body(event))
    withdrawal = settle_withdrawal(backend, actor, command)

    return format_response(200, {'withdrawal': withdrawal})
