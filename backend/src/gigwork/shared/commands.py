"""
Typed commands accepted by the workflow engine.

Every state change enters the system as one of these frozen structs.
``validate`` runs before any remote call and raises ``ValidationError``.
"""
import base64
import binascii
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .config import Config
from .errors import ValidationError
from .models import AssignmentStatus, Decision, PaymentMethod
from .utils import to_decimal

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def is_valid_email(email: str) -> bool:
    """Validate email format using regex."""
    return EMAIL_PATTERN.match(email or '') is not None


def _required(value, field: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f'Missing {field}')
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be text')
    return value.strip()


def _lower(value):
    """Trimmed, lowercased text; anything else is left for validation to refuse."""
    return value.strip().lower() if isinstance(value, str) else value


def _optional_text(value, field: str):
    if value is not None and not isinstance(value, str):
        raise ValidationError(f'{field} must be text')


def _optional(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def normalize_decision(value) -> str:
    decision = str(value or '').strip().lower()
    if decision not in Decision.ALL:
        raise ValidationError('Invalid decision. Must be approve or reject')
    return decision


def _positive_amount(amount: Decimal, field: str):
    if amount <= 0:
        raise ValidationError(f'{field} must be greater than zero')


@dataclass(frozen=True)
class UploadedFile:
    """A file delivered inline in a request body."""
    name: str
    content: bytes
    content_type: str = 'application/octet-stream'

    @classmethod
    def from_payload(cls, payload, field: str) -> Optional['UploadedFile']:
        """
        Decode ``{"name": ..., "content": <base64>, "contentType": ...}``.

        Returns None when the payload is absent.
        """
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise ValidationError(f'Invalid {field}')
        name = _required(payload.get('name'), f'{field} name')
        try:
            content = base64.b64decode(payload.get('content') or '', validate=True)
        except (binascii.Error, ValueError, TypeError):
            raise ValidationError(f'{field} content must be base64 encoded')
        return cls(
            name=name,
            content=content,
            content_type=payload.get('contentType') or 'application/octet-stream'
        )

    @property
    def extension(self) -> str:
        if '.' not in self.name:
            return ''
        return self.name.rsplit('.', 1)[1].lower()

    @property
    def safe_name(self) -> str:
        """File name reduced to characters safe for a storage key."""
        return re.sub(r'[^\w.-]', '_', self.name.rsplit('/', 1)[-1])

    def validate(self, cfg: Config, field: str, allowed_extensions=None):
        if not self.content:
            raise ValidationError(f'{field} is empty')
        if len(self.content) > cfg.MAX_UPLOAD_BYTES:
            limit_mb = round(cfg.MAX_UPLOAD_BYTES / 1024 / 1024)
            raise ValidationError(f'{field} size must be less than {limit_mb}MB')
        if allowed_extensions and self.extension not in allowed_extensions:
            raise ValidationError(
                f'{field} must be one of: {", ".join(allowed_extensions)}'
            )


@dataclass(frozen=True)
class RegisterWorkerCommand:
    full_name: str
    email: str
    phone: str
    password: str
    father_name: Optional[str] = None
    city: Optional[str] = None
    qualification: Optional[str] = None
    job: Optional[str] = None
    payment_screenshot: Optional[UploadedFile] = None

    @classmethod
    def from_body(cls, body: dict) -> 'RegisterWorkerCommand':
        return cls(
            full_name=body.get('full_name'),
            email=_lower(body.get('email')),
            phone=body.get('phone'),
            password=body.get('password') or '',
            father_name=_optional(body.get('father_name')),
            city=_optional(body.get('city')),
            qualification=_optional(body.get('qualification')),
            job=_optional(body.get('job')),
            payment_screenshot=UploadedFile.from_payload(
                body.get('payment_screenshot'), 'payment_screenshot'
            )
        )

    def validate(self, cfg: Config):
        _required(self.full_name, 'full_name')
        _required(self.phone, 'phone')
        _required(self.email, 'email')
        if not is_valid_email(self.email):
            raise ValidationError('Invalid email format')
        if not isinstance(self.password, str) or len(self.password) < cfg.MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f'Password must be at least {cfg.MIN_PASSWORD_LENGTH} characters'
            )
        if self.payment_screenshot:
            self.payment_screenshot.validate(cfg, 'payment_screenshot')


@dataclass(frozen=True)
class ApproveUserCommand:
    user_id: str

    def validate(self, cfg: Config):
        _required(self.user_id, 'user_id')


@dataclass(frozen=True)
class RejectUserCommand:
    user_id: str

    def validate(self, cfg: Config):
        _required(self.user_id, 'user_id')


def user_review_command(user_id: str, decision):
    """Build the approve/reject command for a user review request."""
    if normalize_decision(decision) == Decision.APPROVE:
        return ApproveUserCommand(user_id=user_id)
    return RejectUserCommand(user_id=user_id)


@dataclass(frozen=True)
class PublishAssignmentCommand:
    title: str
    description: str
    payment_amount: Decimal
    file: Optional[UploadedFile]
    status: str = AssignmentStatus.ACTIVE

    @classmethod
    def from_body(cls, body: dict) -> 'PublishAssignmentCommand':
        return cls(
            title=body.get('title'),
            description=body.get('description') or '',
            payment_amount=to_decimal(body.get('payment_amount'), 'payment_amount'),
            file=UploadedFile.from_payload(body.get('file'), 'file'),
            status=body.get('status') or AssignmentStatus.ACTIVE
        )

    def validate(self, cfg: Config):
        _required(self.title, 'title')
        _optional_text(self.description, 'description')
        _positive_amount(self.payment_amount, 'payment_amount')
        if self.status not in AssignmentStatus.ALL:
            raise ValidationError('Invalid status. Must be active or inactive')
        if self.file is None:
            raise ValidationError('An assignment file is required')
        self.file.validate(cfg, 'file')


@dataclass(frozen=True)
class UpdateAssignmentCommand:
    """Partial update; fields left as None are not touched."""
    assignment_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    payment_amount: Optional[Decimal] = None
    status: Optional[str] = None
    file: Optional[UploadedFile] = None

    @classmethod
    def from_body(cls, assignment_id: str, body: dict) -> 'UpdateAssignmentCommand':
        amount = body.get('payment_amount')
        return cls(
            assignment_id=assignment_id,
            title=body.get('title'),
            description=body.get('description'),
            payment_amount=None if amount is None else to_decimal(amount, 'payment_amount'),
            status=body.get('status'),
            file=UploadedFile.from_payload(body.get('file'), 'file')
        )

    def changed_fields(self) -> dict:
        fields = {
            'title': self.title,
            'description': self.description,
            'payment_amount': self.payment_amount,
            'status': self.status,
        }
        return {k: v for k, v in fields.items() if v is not None}

    def validate(self, cfg: Config):
        _required(self.assignment_id, 'assignment_id')
        if not self.changed_fields() and self.file is None:
            raise ValidationError('Nothing to update')
        if self.title is not None:
            _required(self.title, 'title')
        _optional_text(self.description, 'description')
        if self.payment_amount is not None:
            _positive_amount(self.payment_amount, 'payment_amount')
        if self.status is not None and self.status not in AssignmentStatus.ALL:
            raise ValidationError('Invalid status. Must be active or inactive')
        if self.file is not None:
            self.file.validate(cfg, 'file')


@dataclass(frozen=True)
class SetAssignmentStatusCommand:
    assignment_id: str
    status: str

    def validate(self, cfg: Config):
        _required(self.assignment_id, 'assignment_id')
        if self.status not in AssignmentStatus.ALL:
            raise ValidationError('Invalid status. Must be active or inactive')


@dataclass(frozen=True)
class DeleteAssignmentCommand:
    assignment_id: str

    def validate(self, cfg: Config):
        _required(self.assignment_id, 'assignment_id')


@dataclass(frozen=True)
class SubmitWorkCommand:
    assignment_id: str
    file: Optional[UploadedFile]

    @classmethod
    def from_body(cls, body: dict) -> 'SubmitWorkCommand':
        return cls(
            assignment_id=body.get('assignment_id'),
            file=UploadedFile.from_payload(body.get('file'), 'file')
        )

    def validate(self, cfg: Config):
        _required(self.assignment_id, 'assignment_id')
        if self.file is None:
            raise ValidationError('A submission file is required')
        self.file.validate(cfg, 'file', cfg.SUBMISSION_EXTENSIONS)


@dataclass(frozen=True)
class ReviewSubmissionCommand:
    submission_id: str
    decision: str

    @classmethod
    def from_body(cls, submission_id: str, body: dict) -> 'ReviewSubmissionCommand':
        return cls(submission_id=submission_id, decision=body.get('decision'))

    def validate(self, cfg: Config):
        _required(self.submission_id, 'submission_id')
        normalize_decision(self.decision)


@dataclass(frozen=True)
class RequestWithdrawalCommand:
    amount: Decimal
    payment_method: str
    payment_details: str

    @classmethod
    def from_body(cls, body: dict) -> 'RequestWithdrawalCommand':
        return cls(
            amount=to_decimal(body.get('amount'), 'amount'),
            payment_method=_lower(body.get('payment_method')),
            payment_details=body.get('payment_details')
        )

    def validate(self, cfg: Config):
        _positive_amount(self.amount, 'amount')
        if self.payment_method not in PaymentMethod.ALL:
            raise ValidationError(
                f'Invalid payment_method. Must be one of: {", ".join(PaymentMethod.ALL)}'
            )
        _required(self.payment_details, 'payment_details')


@dataclass(frozen=True)
class SettleWithdrawalCommand:
    withdrawal_id: str
    decision: str

    @classmethod
    def from_body(cls, withdrawal_id: str, body: dict) -> 'SettleWithdrawalCommand':
        return cls(withdrawal_id=withdrawal_id, decision=body.get('decision'))

    def validate(self, cfg: Config):
        _required(self.withdrawal_id, 'withdrawal_id')
        normalize_decision(self.decision)
