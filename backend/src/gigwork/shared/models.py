"""
Data models and status constants for the gig work platform.
Based on the workflow: Registered → Approved → Submitted → Reviewed → Earnings → Withdrawal → Settled
"""

PROFILES = 'profiles'
ASSIGNMENTS = 'assignments'
SUBMISSIONS = 'submissions'
WITHDRAWALS = 'withdrawals'

# WebSocket connections watching a live view
CONNECTIONS = 'connections'

# Collections a live view can watch
VIEWABLE_COLLECTIONS = (PROFILES, ASSIGNMENTS, SUBMISSIONS, WITHDRAWALS)

COLLECTIONS = VIEWABLE_COLLECTIONS + (CONNECTIONS,)


class Role:
    """User roles. Immutable after registration."""
    WORKER = 'worker'
    ADMIN = 'admin'


class AssignmentStatus:
    """Assignment visibility statuses."""
    ACTIVE = 'active'
    INACTIVE = 'inactive'

    ALL = (ACTIVE, INACTIVE)


class SubmissionStatus:
    """Submission review statuses. APPROVED and REJECTED are terminal."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class WithdrawalStatus:
    """Withdrawal settlement statuses. APPROVED and REJECTED are terminal."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    # Statuses that reserve part of the worker's earnings
    RESERVING = (PENDING, APPROVED)


class PaymentMethod:
    """Supported payout channels."""
    EASYPAISA = 'easypaisa'
    JAZZCASH = 'jazzcash'
    BANK = 'bank'

    ALL = (EASYPAISA, JAZZCASH, BANK)


class Decision:
    """Admin review decisions for users, submissions and withdrawals."""
    APPROVE = 'approve'
    REJECT = 'reject'

    ALL = (APPROVE, REJECT)


UNKNOWN_LABEL = 'Unknown'
