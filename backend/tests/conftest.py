"""
Shared fixtures: an in-memory backend plus helpers to create admins,
workers and assignments through the real workflow functions.
"""
import base64
import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from gigwork.shared.assignments import publish_assignment  # noqa: E402
from gigwork.shared.backend import memory_backend, set_backend  # noqa: E402
from gigwork.shared.commands import (  # noqa: E402
    ApproveUserCommand,
    PublishAssignmentCommand,
    RegisterWorkerCommand,
    UploadedFile,
)
from gigwork.shared.config import Config  # noqa: E402
from gigwork.shared.registration import approve_user, create_admin, register_worker  # noqa: E402


def file_payload(name='work.pdf', content=b'%PDF-1.4 test', content_type='application/pdf'):
    """Request-body form of an uploaded file."""
    return {
        'name': name,
        'content': base64.b64encode(content).decode('ascii'),
        'contentType': content_type,
    }


def uploaded(name='work.pdf', content=b'%PDF-1.4 test', content_type='application/pdf'):
    return UploadedFile(name=name, content=content, content_type=content_type)


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def backend(config):
    backend = memory_backend(config)
    set_backend(backend)
    yield backend
    set_backend(None)


@pytest.fixture
def admin(backend):
    return create_admin(backend, 'admin@example.com', 'admin-secret', 'Site Admin')


@pytest.fixture
def make_worker(backend, admin):
    counter = {'n': 0}

    def _make(approved=True, name='Ali Khan'):
        counter['n'] += 1
        profile = register_worker(backend, RegisterWorkerCommand(
            full_name=name,
            email=f"worker{counter['n']}@example.com",
            phone='03001234567',
            password='secret123',
        ))
        if approved:
            profile = approve_user(backend, admin, ApproveUserCommand(user_id=profile['id']))
        return profile

    return _make


@pytest.fixture
def worker(make_worker):
    return make_worker()


@pytest.fixture
def make_assignment(backend, admin):

    def _make(payment_amount='50', title='Essay on climate', status='active'):
        return publish_assignment(backend, admin, PublishAssignmentCommand(
            title=title,
            description='Write 500 words',
            payment_amount=Decimal(payment_amount),
            file=uploaded('brief.pdf'),
            status=status,
        ))

    return _make


@pytest.fixture
def assignment(make_assignment):
    return make_assignment()
