"""
Azure DevOps infrastructure implementations.
"""
from .http_client import ADOHttpClient, basic_auth_header, classify_status
from .ado_repository import ADOWorkItemRepository, ADOTestPlanRepository
from .classification_repository import ADOClassificationNodeRepository
from .token_repository import ADOTokenRepository, identity_base_url

__all__ = [
    'ADOHttpClient',
    'basic_auth_header',
    'classify_status',
    'ADOWorkItemRepository',
    'ADOTestPlanRepository',
    'ADOClassificationNodeRepository',
    'ADOTokenRepository',
    'identity_base_url',
]
