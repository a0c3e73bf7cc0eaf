"""
Assignment publishing. Admins own the assignment lifecycle; workers only
read active assignments.
"""
from .access import is_admin, require_admin, require_approved_worker
from .blob_store import storage_path
from .commands import (
    DeleteAssignmentCommand,
    PublishAssignmentCommand,
    SetAssignmentStatusCommand,
    UpdateAssignmentCommand,
)
from .errors import GigworkError, NotFoundError
from .logging import logger
from .models import ASSIGNMENTS, AssignmentStatus
from .utils import now_iso


def get_assignment(backend, assignment_id: str) -> dict:
    assignment = backend.store.get(ASSIGNMENTS, assignment_id)
    if assignment is None:
        raise NotFoundError('Assignment not found')
    return assignment


def worker_assignment_filters(cfg) -> dict:
    """Filters applied when a worker lists assignments."""
    if cfg.WORKERS_SEE_ACTIVE_ONLY:
        return {'status': AssignmentStatus.ACTIVE}
    return {}


def list_assignments(backend, actor: dict) -> list:
    if is_admin(actor):
        filters = {}
    else:
        require_approved_worker(actor)
        filters = worker_assignment_filters(backend.config)
    return backend.store.query(ASSIGNMENTS, filters, order_by='created_at', descending=True)


def publish_assignment(backend, actor: dict, command: PublishAssignmentCommand) -> dict:
    require_admin(actor)
    command.validate(backend.config)

    file_url = backend.blobs.upload(
        storage_path('assignments', command.file.safe_name),
        command.file.content,
        command.file.content_type
    )
    assignment = {
        'title': command.title.strip(),
        'description': command.description or '',
        'file_url': file_url,
        'payment_amount': command.payment_amount,
        'status': command.status,
        'created_at': now_iso(),
    }
    try:
        assignment = backend.store.create(ASSIGNMENTS, assignment)
    except GigworkError:
        backend.blobs.delete(file_url)
        raise

    logger.info(f"Published assignment {assignment['id']} ({command.payment_amount})")
    return assignment


def update_assignment(backend, actor: dict, command: UpdateAssignmentCommand) -> dict:
    """
    Partial update. A new file replaces the old one, which is released after
    the document points at the new file. ``created_at`` is never touched.
    """
    require_admin(actor)
    command.validate(backend.config)

    current = get_assignment(backend, command.assignment_id)
    fields = command.changed_fields()
    if 'title' in fields:
        fields['title'] = fields['title'].strip()

    new_file_url = None
    if command.file is not None:
        new_file_url = backend.blobs.upload(
            storage_path('assignments', command.file.safe_name),
            command.file.content,
            command.file.content_type
        )
        fields['file_url'] = new_file_url
    fields['updated_at'] = now_iso()

    try:
        updated = backend.store.update(ASSIGNMENTS, command.assignment_id, set_fields=fields)
    except GigworkError:
        if new_file_url:
            backend.blobs.delete(new_file_url)
        raise

    if new_file_url and current.get('file_url'):
        _release_file(backend, current['file_url'])

    logger.info(f"Updated assignment {command.assignment_id}: {sorted(fields)}")
    return updated


def set_assignment_status(backend, actor: dict, command: SetAssignmentStatusCommand) -> dict:
    require_admin(actor)
    command.validate(backend.config)
    get_assignment(backend, command.assignment_id)

    updated = backend.store.update(
        ASSIGNMENTS, command.assignment_id,
        set_fields={'status': command.status, 'updated_at': now_iso()}
    )
    logger.info(f"Assignment {command.assignment_id} is now {command.status}")
    return updated


def delete_assignment(backend, actor: dict, command: DeleteAssignmentCommand) -> dict:
    """
    Delete the assignment and release its file. Submissions that reference it
    are left in place; views render them as 'Unknown'.
    """
    require_admin(actor)
    command.validate(backend.config)

    deleted = backend.store.delete(ASSIGNMENTS, command.assignment_id)
    if deleted is None:
        raise NotFoundError('Assignment not found')

    if deleted.get('file_url'):
        _release_file(backend, deleted['file_url'])

    logger.info(f"Deleted assignment {command.assignment_id}")
    return deleted


def _release_file(backend, url: str):
    # The record is already gone or repointed; a stale file is not worth failing over
    try:
        if not backend.blobs.delete(url):
            logger.info(f"File {url} not found in storage, continuing")
    except GigworkError as e:
        logger.warning(f"Could not release file {url}: {e.message}")


def download_url(backend, actor: dict, assignment_id: str) -> str:
    """Short-lived link to the assignment brief."""
    if not is_admin(actor):
        require_approved_worker(actor)
    assignment = get_assignment(backend, assignment_id)
    return backend.blobs.download_url(assignment['file_url'])
