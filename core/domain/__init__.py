"""
Domain entities and value objects.
"""
from .credentials import Credentials, ProcessDefaults, normalize_org_url, is_usable_pat
from .errors import (
    ErrorKind,
    ADOIntegrationError,
    MissingCredential,
    AuthError,
    Forbidden,
    NotFound,
    RateLimited,
    NetworkUnreachable,
    UpstreamServerError,
    ValidationError,
    error_for_kind,
)
from .patch import PatchOp, PatchOperation, PatchDocument
from .test_case import TestStep, TestCase, FindOrCreateRequest, SyncOutcome
from .work_item import WorkItem, WorkItemRelation, UserStory, LinkedTestCase

__all__ = [
    'Credentials',
    'ProcessDefaults',
    'normalize_org_url',
    'is_usable_pat',
    'ErrorKind',
    'ADOIntegrationError',
    'MissingCredential',
    'AuthError',
    'Forbidden',
    'NotFound',
    'RateLimited',
    'NetworkUnreachable',
    'UpstreamServerError',
    'ValidationError',
    'error_for_kind',
    'PatchOp',
    'PatchOperation',
    'PatchDocument',
    'TestStep',
    'TestCase',
    'FindOrCreateRequest',
    'SyncOutcome',
    'WorkItem',
    'WorkItemRelation',
    'UserStory',
    'LinkedTestCase',
]
