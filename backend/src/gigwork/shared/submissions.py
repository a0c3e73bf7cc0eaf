"""
Submission intake and review.

State machine: pending → approved (terminal, credits earnings)
               pending → rejected (terminal)

Approval is one transaction: the submission update is conditioned on the
status still being pending and the earnings credit is an atomic ADD on the
worker's profile, so concurrent reviews credit the worker exactly once.
"""
from typing import List, Optional

from .access import is_admin, require_admin, require_approved_worker
from .blob_store import storage_path
from .commands import ReviewSubmissionCommand, SubmitWorkCommand, normalize_decision
from .errors import ConditionFailedError, GigworkError, InvalidStateError, NotFoundError
from .logging import logger
from .models import (
    ASSIGNMENTS,
    PROFILES,
    SUBMISSIONS,
    AssignmentStatus,
    Decision,
    SubmissionStatus,
)
from .store import UpdateOp, new_id
from .utils import now_iso


def current_submission(submissions: List[dict], assignment_id: str) -> Optional[dict]:
    """Most recent submission for an assignment, which defines its current status."""
    matching = [s for s in submissions if s.get('assignment_id') == assignment_id]
    if not matching:
        return None
    return max(matching, key=lambda s: s.get('submitted_at') or '')


def list_submissions(backend, actor: dict, status: str = None) -> list:
    """Admins see every submission, workers only their own."""
    filters = {}
    if not is_admin(actor):
        require_approved_worker(actor)
        filters['worker_id'] = actor['id']
    if status:
        filters['status'] = status
    return backend.store.query(SUBMISSIONS, filters, order_by='submitted_at', descending=True)


def submit_work(backend, actor: dict, command: SubmitWorkCommand) -> dict:
    require_approved_worker(actor)
    command.validate(backend.config)
    cfg = backend.config

    assignment = backend.store.get(ASSIGNMENTS, command.assignment_id)
    if assignment is None:
        raise NotFoundError('Assignment not found')
    if cfg.WORKERS_SEE_ACTIVE_ONLY and assignment.get('status') != AssignmentStatus.ACTIVE:
        raise InvalidStateError('Assignment is not active')

    if not cfg.ALLOW_RESUBMISSION:
        previous = backend.store.query(SUBMISSIONS, {
            'worker_id': actor['id'],
            'assignment_id': command.assignment_id,
            'status': (SubmissionStatus.PENDING, SubmissionStatus.APPROVED),
        })
        if previous:
            raise InvalidStateError('You already have a submission for this assignment')

    file_url = backend.blobs.upload(
        storage_path(f"submissions/{actor['id']}", command.file.safe_name),
        command.file.content,
        command.file.content_type
    )
    submission = {
        'id': new_id(),
        'assignment_id': command.assignment_id,
        'worker_id': actor['id'],
        'file_url': file_url,
        'status': SubmissionStatus.PENDING,
        'submitted_at': now_iso(),
    }
    try:
        backend.store.create(SUBMISSIONS, submission)
    except GigworkError:
        backend.blobs.delete(file_url)
        raise

    logger.info(f"Worker {actor['id']} submitted {submission['id']} for {command.assignment_id}")
    return submission


def review_submission(backend, actor: dict, command: ReviewSubmissionCommand) -> dict:
    """
    Approve or reject a pending submission.

    Raises:
        NotFoundError: Missing submission, or approving against a deleted assignment
        InvalidStateError: The submission is no longer pending
    """
    require_admin(actor)
    command.validate(backend.config)
    decision = normalize_decision(command.decision)

    submission = backend.store.get(SUBMISSIONS, command.submission_id)
    if submission is None:
        raise NotFoundError('Submission not found')
    if submission['status'] != SubmissionStatus.PENDING:
        raise InvalidStateError(f"Submission already {submission['status']}")

    reviewed_at = now_iso()
    if decision == Decision.APPROVE:
        assignment = backend.store.get(ASSIGNMENTS, submission['assignment_id'])
        if assignment is None:
            raise NotFoundError('Assignment no longer exists; the submission can only be rejected')
        amount = assignment['payment_amount']
        changes = {
            'status': SubmissionStatus.APPROVED,
            'reviewed_at': reviewed_at,
            'earned_amount': amount,
        }
        operations = [
            UpdateOp(SUBMISSIONS, submission['id'], set=changes,
                     expected={'status': SubmissionStatus.PENDING}),
            UpdateOp(PROFILES, submission['worker_id'], add={'total_earnings': amount}),
        ]
    else:
        changes = {'status': SubmissionStatus.REJECTED, 'reviewed_at': reviewed_at}
        operations = [
            UpdateOp(SUBMISSIONS, submission['id'], set=changes,
                     expected={'status': SubmissionStatus.PENDING}),
        ]

    try:
        backend.store.transact(operations)
    except ConditionFailedError as e:
        if e.index == 1:
            raise NotFoundError('Worker profile not found')
        raise InvalidStateError('Submission was reviewed concurrently')

    submission.update(changes)
    logger.info(f"Submission {submission['id']} {submission['status']} by {actor['id']}")
    return submission
