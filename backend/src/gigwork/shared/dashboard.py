"""
Dashboard summaries for admins and workers.
"""
from .access import require_admin, require_approved_worker
from .assignments import worker_assignment_filters
from .models import (
    ASSIGNMENTS,
    PROFILES,
    SUBMISSIONS,
    UNKNOWN_LABEL,
    WITHDRAWALS,
    SubmissionStatus,
    WithdrawalStatus,
)
from .withdrawals import compute_available_balance

RECENT_SUBMISSIONS = 5


def _by_id(items):
    return {item['id']: item for item in items}


def enrich_submissions(submissions, assignments_by_id, profiles_by_id):
    """
    Attach assignment title/amount and worker name to each submission.
    Deleted assignments or workers show up as 'Unknown'.
    """
    enriched = []
    for submission in submissions:
        assignment = assignments_by_id.get(submission.get('assignment_id'))
        worker = profiles_by_id.get(submission.get('worker_id'))
        enriched.append({
            **submission,
            'assignment_title': assignment['title'] if assignment else UNKNOWN_LABEL,
            'payment_amount': assignment.get('payment_amount') if assignment else None,
            'worker_name': worker.get('full_name', UNKNOWN_LABEL) if worker else UNKNOWN_LABEL,
        })
    return enriched


def enrich_withdrawals(withdrawals, profiles_by_id):
    enriched = []
    for withdrawal in withdrawals:
        worker = profiles_by_id.get(withdrawal.get('worker_id'))
        enriched.append({
            **withdrawal,
            'worker_name': worker.get('full_name', UNKNOWN_LABEL) if worker else UNKNOWN_LABEL,
        })
    return enriched


def admin_stats(backend, actor: dict) -> dict:
    require_admin(actor)
    store = backend.store
    profiles = store.query(PROFILES)
    assignments = store.query(ASSIGNMENTS)
    submissions = store.query(SUBMISSIONS)
    withdrawals = store.query(WITHDRAWALS)

    return {
        'totalUsers': len(profiles),
        'pendingUsers': len([p for p in profiles if not p.get('is_approved')]),
        'totalAssignments': len(assignments),
        'pendingSubmissions': len([s for s in submissions if s['status'] == SubmissionStatus.PENDING]),
        'approvedSubmissions': len([s for s in submissions if s['status'] == SubmissionStatus.APPROVED]),
        'pendingWithdrawals': len([w for w in withdrawals if w['status'] == WithdrawalStatus.PENDING]),
    }


def worker_summary(backend, actor: dict) -> dict:
    require_approved_worker(actor)
    store = backend.store
    profile = store.get(PROFILES, actor['id']) or actor
    assignments = store.query(ASSIGNMENTS, worker_assignment_filters(backend.config))
    submissions = store.query(SUBMISSIONS, {'worker_id': actor['id']},
                              order_by='submitted_at', descending=True)
    withdrawals = store.query(WITHDRAWALS, {'worker_id': actor['id']})

    all_assignments = _by_id(store.query(ASSIGNMENTS))
    recent = enrich_submissions(submissions[:RECENT_SUBMISSIONS], all_assignments,
                                {profile['id']: profile})
    return {
        'availableAssignments': len(assignments),
        'pendingSubmissions': len([s for s in submissions if s['status'] == SubmissionStatus.PENDING]),
        'approvedSubmissions': len([s for s in submissions if s['status'] == SubmissionStatus.APPROVED]),
        'totalEarnings': profile.get('total_earnings', 0),
        'availableBalance': compute_available_balance(profile, withdrawals),
        'recentSubmissions': recent,
    }


def admin_submission_rows(backend, actor: dict, status: str = None) -> list:
    """Every submission joined with its assignment and worker."""
    require_admin(actor)
    filters = {'status': status} if status else {}
    submissions = backend.store.query(SUBMISSIONS, filters, order_by='submitted_at', descending=True)
    return enrich_submissions(
        submissions,
        _by_id(backend.store.query(ASSIGNMENTS)),
        _by_id(backend.store.query(PROFILES))
    )


def admin_withdrawal_rows(backend, actor: dict, status: str = None) -> list:
    require_admin(actor)
    filters = {'status': status} if status else {}
    withdrawals = backend.store.query(WITHDRAWALS, filters, order_by='requested_at', descending=True)
    return enrich_withdrawals(withdrawals, _by_id(backend.store.query(PROFILES)))


def worker_submission_rows(backend, actor: dict, submissions: list) -> list:
    """A worker's own submissions joined with assignment titles."""
    return enrich_submissions(
        submissions,
        _by_id(backend.store.query(ASSIGNMENTS)),
        {actor['id']: actor}
    )
