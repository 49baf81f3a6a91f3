"""
Service factory - wires Azure DevOps repositories into the core services.
"""
from typing import Callable, Optional, Type
import time

import requests

from core.application.use_cases.integration_operations import IntegrationOperations
from core.config.environment import EnvironmentConfig
from core.services.cache import ResponseCache
from core.services.classification_nodes import ClassificationNodeService
from core.services.health_check import HealthCheckService
from core.services.logger import PACKAGE_LOGGERS, configure_logging
from core.services.query_engine import QueryEngine
from core.services.relation_resolver import RelationResolver
from core.services.retry_policy import RetryPolicy
from core.services.sync_orchestrator import SyncOrchestrator
from core.services.test_management import TestManagementService
from core.services.token_service import TokenService

from infrastructure.ado.ado_repository import ADOWorkItemRepository, ADOTestPlanRepository
from infrastructure.ado.classification_repository import ADOClassificationNodeRepository
from infrastructure.ado.http_client import ADOHttpClient
from infrastructure.ado.token_repository import ADOTokenRepository


class ServiceFactory:
    """
    Builds the object graph for one process.

    The HTTP session and read cache are shared by all requests; identity is
    never stored here and travels with each call instead.
    """

    def __init__(
        self,
        config: Type[EnvironmentConfig] = EnvironmentConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            config: Configuration source (class with EnvironmentConfig's attributes)
            session: HTTP session override, mainly for tests
            sleep: Backoff function override, mainly for tests
        """
        self._config = config
        for name in PACKAGE_LOGGERS:
            configure_logging(config.LOG_LEVEL, config.LOG_FORMAT, logger_name=name)
        versions = config.api_versions()

        self.http_client = ADOHttpClient(
            timeout=config.ADO_HTTP_TIMEOUT,
            retry_policy=RetryPolicy(backoff_seconds=config.ADO_RETRY_BACKOFF_SECONDS),
            session=session,
            sleep=sleep,
        )
        self.work_items = ADOWorkItemRepository(self.http_client, versions)
        self.test_plans = ADOTestPlanRepository(self.http_client, versions)
        self.classification_nodes = ADOClassificationNodeRepository(self.http_client, versions)
        self.tokens = ADOTokenRepository(self.http_client, versions)

        self.cache = ResponseCache(
            default_ttl_seconds=config.CACHE_TTL_SECONDS,
            max_size=config.CACHE_MAX_ENTRIES,
        )
        self.query_engine = QueryEngine(self.work_items)
        self.relation_resolver = RelationResolver(self.work_items, batch_size=config.ADO_BATCH_SIZE)
        self.orchestrator = SyncOrchestrator(
            self.work_items,
            self.test_plans,
            query_engine=self.query_engine,
            relation_resolver=self.relation_resolver,
            cache=self.cache,
        )
        self.node_service = ClassificationNodeService(self.classification_nodes)
        self.token_service = TokenService(self.tokens)
        self.test_management = TestManagementService(self.test_plans)
        self.health_check = HealthCheckService(self.work_items, self.test_plans)

    def create_operations(self) -> IntegrationOperations:
        return IntegrationOperations(
            defaults=self._config.process_defaults(),
            orchestrator=self.orchestrator,
            query_engine=self.query_engine,
            nodes=self.node_service,
            tokens=self.token_service,
            health=self.health_check,
            test_management=self.test_management,
        )
