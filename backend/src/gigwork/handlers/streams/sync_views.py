"""
Sync Live Views Handler.
Triggered by DynamoDB Streams on the profiles, assignments, submissions and
withdrawals tables (view type NEW_AND_OLD_IMAGES). Every WebSocket
connection watching a scope that a changed record falls into gets its view
refetched and pushed.
"""
from gigwork.shared.backend import get_backend
from gigwork.shared.connections import sync_connections
from gigwork.shared.logging import logger


def handler(event, context):
    records = event.get('Records') or []
    if not records:
        return {'processed': 0, 'refreshed': 0}

    backend = get_backend()
    if not hasattr(backend.store, 'dispatch_stream_records'):
        # In-process stores notify their views on every write
        logger.warning("Configured store does not consume stream records")
        return {'processed': len(records), 'refreshed': 0}

    result = sync_connections(backend, records)
    logger.info(f"Processed {len(records)} stream records, refreshed {result['refreshed']} views "
                f"across {result['connections']} connections")
    return {'processed': len(records), **result}
