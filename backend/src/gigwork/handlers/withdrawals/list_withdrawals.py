"""
List Withdrawals Handler.
GET /withdrawals?status=pending
Workers also get their available balance.
"""
from gigwork.shared.access import is_admin, load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.dashboard import admin_withdrawal_rows
from gigwork.shared.utils import api_handler, format_response, get_query_param
from gigwork.shared.withdrawals import available_balance, list_withdrawals


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))
    status = get_query_param(event, 'status')

    if is_admin(actor):
        return format_response(200, {'withdrawals': admin_withdrawal_rows(backend, actor, status)})

    withdrawals = list_withdrawals(backend, actor, status)
    return format_response(200, {
        'withdrawals': withdrawals,
        'totalEarnings': actor.get('total_earnings', 0),
        'availableBalance': available_balance(backend, actor['id'])
    })
