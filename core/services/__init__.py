"""
Core services - integration logic over the repository interfaces.
"""
from .cache import ResponseCache, make_cache_key
from .classification_nodes import ClassificationNodeService
from .credential_resolver import resolve
from .health_check import HealthCheckService, HealthReport, CheckResult, CheckStatus, OverallStatus
from .logger import configure_logging, StructuredFormatter, RedactingFilter
from .query_engine import QueryEngine
from .relation_resolver import RelationResolver, extract_linked_ids, parse_relation_target
from .retry_policy import RetryPolicy
from .sync_orchestrator import SyncOrchestrator
from .test_management import TestManagementService
from .token_service import TokenService, TokenPage

__all__ = [
    'ResponseCache',
    'make_cache_key',
    'ClassificationNodeService',
    'resolve',
    'HealthCheckService',
    'HealthReport',
    'CheckResult',
    'CheckStatus',
    'OverallStatus',
    'configure_logging',
    'StructuredFormatter',
    'RedactingFilter',
    'QueryEngine',
    'RelationResolver',
    'extract_linked_ids',
    'parse_relation_target',
    'RetryPolicy',
    'SyncOrchestrator',
    'TestManagementService',
    'TokenService',
    'TokenPage',
]
