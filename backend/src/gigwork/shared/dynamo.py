"""
DynamoDB adapter for the document store.

Tables use ``id`` as partition key; submissions and withdrawals carry a
``WorkerIndex`` GSI on ``worker_id`` (projection ALL). Live subscriptions are
fed by DynamoDB Streams through ``dispatch_stream_records``.
"""
import boto3
from typing import Any, Dict, List, Optional
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .aws import AWS_ERRORS, client_error_code, remote_error
from .config import Config, config
from .errors import ConditionFailedError, NotFoundError
from .logging import logger
from .models import SUBMISSIONS, WITHDRAWALS, COLLECTIONS
from .store import DocumentStore, PutOp, UpdateOp, matches, new_id, sort_items

# Collections with a GSI on worker_id
WORKER_INDEXED = (SUBMISSIONS, WITHDRAWALS)


def build_update_expression(
    set_fields: Dict[str, Any],
    add_fields: Dict[str, Any],
    expected: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Build UpdateExpression / ConditionExpression parameters.
    The document must exist and every ``expected`` field must hold.
    """
    names = {'#id': 'id'}
    values = {}
    set_parts = []
    add_parts = []
    conditions = ['attribute_exists(#id)']

    for i, (name, value) in enumerate(set_fields.items()):
        names[f'#s{i}'] = name
        values[f':s{i}'] = value
        set_parts.append(f'#s{i} = :s{i}')

    for i, (name, delta) in enumerate(add_fields.items()):
        names[f'#a{i}'] = name
        values[f':a{i}'] = delta
        add_parts.append(f'#a{i} :a{i}')

    for i, (name, value) in enumerate(expected.items()):
        names[f'#c{i}'] = name
        if isinstance(value, (tuple, list)):
            placeholders = []
            for j, option in enumerate(value):
                values[f':c{i}_{j}'] = option
                placeholders.append(f':c{i}_{j}')
            conditions.append(f'#c{i} IN ({", ".join(placeholders)})')
        else:
            values[f':c{i}'] = value
            conditions.append(f'#c{i} = :c{i}')

    if not set_parts and not add_parts:
        raise ValueError('Update requires at least one field')

    clauses = []
    if set_parts:
        clauses.append('SET ' + ', '.join(set_parts))
    if add_parts:
        clauses.append('ADD ' + ', '.join(add_parts))

    params = {
        'UpdateExpression': ' '.join(clauses),
        'ConditionExpression': ' AND '.join(conditions),
        'ExpressionAttributeNames': names,
    }
    if values:
        params['ExpressionAttributeValues'] = values
    return params


class DynamoDocumentStore(DocumentStore):

    def __init__(self, cfg: Config = config, resource=None, client=None):
        super().__init__()
        self.config = cfg
        self.dynamodb = resource or boto3.resource('dynamodb', region_name=cfg.AWS_REGION)
        self.client = client or boto3.client('dynamodb', region_name=cfg.AWS_REGION)
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def _table(self, collection: str):
        return self.dynamodb.Table(self.config.table_for(collection))

    def _serialize(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {k: self._serializer.serialize(v) for k, v in values.items()}

    def _deserialize(self, image: Dict[str, Any]) -> Dict[str, Any]:
        return {k: self._deserializer.deserialize(v) for k, v in image.items()}

    def create(self, collection: str, item: Dict[str, Any]) -> Dict[str, Any]:
        item = dict(item)
        item.setdefault('id', new_id())
        try:
            self._table(collection).put_item(
                Item=item,
                ConditionExpression=Attr('id').not_exists()
            )
        except AWS_ERRORS as e:
            if client_error_code(e) == 'ConditionalCheckFailedException':
                raise ConditionFailedError(f"{collection} document {item['id']} already exists")
            raise remote_error(f'create in {collection}', e)
        logger.info(f"Created {collection} document {item['id']}")
        return item

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._table(collection).get_item(Key={'id': doc_id})
        except AWS_ERRORS as e:
            raise remote_error(f'get from {collection}', e)
        return response.get('Item')

    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Query the worker GSI when the filter pins a single worker, otherwise
        scan with a filter expression. Follows LastEvaluatedKey to the end.
        """
        remaining = dict(filters or {})
        params = {}

        worker_id = remaining.get('worker_id')
        use_index = (
            collection in WORKER_INDEXED
            and worker_id is not None
            and not isinstance(worker_id, (tuple, list))
        )
        if use_index:
            remaining.pop('worker_id')
            params['IndexName'] = self.config.WORKER_INDEX
            params['KeyConditionExpression'] = Key('worker_id').eq(worker_id)

        filter_expression = None
        for name, value in remaining.items():
            if isinstance(value, (tuple, list)):
                condition = Attr(name).is_in(list(value))
            else:
                condition = Attr(name).eq(value)
            filter_expression = condition if filter_expression is None else filter_expression & condition
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression

        table = self._table(collection)
        operation = table.query if use_index else table.scan
        items = []
        try:
            while True:
                response = operation(**params)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                params['ExclusiveStartKey'] = last_key
        except AWS_ERRORS as e:
            raise remote_error(f'query on {collection}', e)

        return sort_items(items, order_by, descending)

    def update(
        self,
        collection: str,
        doc_id: str,
        set_fields: Optional[Dict[str, Any]] = None,
        add_fields: Optional[Dict[str, Any]] = None,
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        params = build_update_expression(set_fields or {}, add_fields or {}, expected or {})
        try:
            response = self._table(collection).update_item(
                Key={'id': doc_id},
                ReturnValues='ALL_NEW',
                **params
            )
        except AWS_ERRORS as e:
            if client_error_code(e) == 'ConditionalCheckFailedException':
                if self.get(collection, doc_id) is None:
                    raise NotFoundError(f'{collection} document {doc_id} not found')
                raise ConditionFailedError(f'{collection} document {doc_id} changed concurrently')
            raise remote_error(f'update in {collection}', e)
        return response.get('Attributes', {})

    def delete(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._table(collection).delete_item(
                Key={'id': doc_id},
                ReturnValues='ALL_OLD'
            )
        except AWS_ERRORS as e:
            raise remote_error(f'delete from {collection}', e)
        return response.get('Attributes')

    def _transact_item(self, op) -> Dict[str, Any]:
        if isinstance(op, PutOp):
            return {
                'Put': {
                    'TableName': self.config.table_for(op.collection),
                    'Item': self._serialize(op.item),
                    'ConditionExpression': 'attribute_not_exists(#id)',
                    'ExpressionAttributeNames': {'#id': 'id'}
                }
            }
        if isinstance(op, UpdateOp):
            params = build_update_expression(op.set, op.add, op.expected)
            if 'ExpressionAttributeValues' in params:
                params['ExpressionAttributeValues'] = self._serialize(
                    params['ExpressionAttributeValues']
                )
            return {
                'Update': {
                    'TableName': self.config.table_for(op.collection),
                    'Key': {'id': {'S': op.doc_id}},
                    **params
                }
            }
        raise TypeError(f'Unsupported operation {op!r}')

    def transact(self, operations: List[Any]) -> None:
        items = [self._transact_item(op) for op in operations]
        try:
            self.client.transact_write_items(TransactItems=items)
        except AWS_ERRORS as e:
            if client_error_code(e) == 'TransactionCanceledException':
                reasons = e.response.get('CancellationReasons', [])
                for index, reason in enumerate(reasons):
                    if reason.get('Code') == 'ConditionalCheckFailed':
                        raise ConditionFailedError('Transaction condition failed', index)
            raise remote_error('transaction', e)
        logger.info(f"Committed transaction with {len(items)} operations")

    def _collection_for_arn(self, arn: str) -> Optional[str]:
        # arn:aws:dynamodb:region:account:table/<name>/stream/<label>
        table_name = arn.split(':table/', 1)[-1].split('/stream/', 1)[0]
        for collection in COLLECTIONS:
            if self.config.table_for(collection) == table_name:
                return collection
        return None

    def dispatch_stream_records(self, records: List[dict]) -> int:
        """
        Refresh every subscription affected by a batch of stream records.
        A subscription is affected when its filters match the old or new
        image of any record on its table.

        Returns:
            Number of subscriptions refreshed
        """
        images: Dict[str, List[dict]] = {}
        # Streams configured without images (KEYS_ONLY) refresh everything
        refresh_all = set()
        for record in records:
            collection = self._collection_for_arn(record.get('eventSourceARN', ''))
            if not collection:
                continue
            change = record.get('dynamodb', {})
            images.setdefault(collection, [])
            found = False
            for key in ('NewImage', 'OldImage'):
                if key in change:
                    images[collection].append(self._deserialize(change[key]))
                    found = True
            if not found:
                refresh_all.add(collection)

        refreshed = 0
        for collection, changed in images.items():
            for subscription in self.subscriptions_for(collection):
                affected = collection in refresh_all or any(
                    matches(image, subscription.filters) for image in changed
                )
                if not affected:
                    continue
                if self.deliver(subscription):
                    refreshed += 1
        return refreshed
