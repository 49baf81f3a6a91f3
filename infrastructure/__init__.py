"""
Infrastructure layer - implementations of interfaces.

Contains:
- ado: Azure DevOps transport and repositories
- repository_factory: Wiring of repositories into core services
"""
from .ado import (
    ADOHttpClient,
    ADOWorkItemRepository,
    ADOTestPlanRepository,
    ADOClassificationNodeRepository,
    ADOTokenRepository,
)
from .repository_factory import ServiceFactory

__all__ = [
    'ADOHttpClient',
    'ADOWorkItemRepository',
    'ADOTestPlanRepository',
    'ADOClassificationNodeRepository',
    'ADOTokenRepository',
    'ServiceFactory',
]
