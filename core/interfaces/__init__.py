"""
Interfaces for dependency inversion following SOLID principles.

Services depend on these abstractions; infrastructure.ado provides the
Azure DevOps implementations.
"""
from .repository import (
    IWorkItemRepository,
    ITestPlanRepository,
    IClassificationNodeRepository,
    ITokenRepository,
)

__all__ = [
    'IWorkItemRepository',
    'ITestPlanRepository',
    'IClassificationNodeRepository',
    'ITokenRepository',
]
