"""
Tests for the Azure DevOps test sync integration layer.

Test modules:
- unit/test_credential_resolver: Credential precedence and normalization
- unit/test_request_builder: JSON Patch documents and steps XML
- unit/test_http_client: Transport, error classification and retries
- unit/test_response_cache: Read cache expiry and keying
- unit/test_relation_resolver: Relation parsing and batched hydration
- unit/test_query_engine: WIQL construction and fallbacks
- unit/test_sync_orchestrator: Find-or-create and story listing
- unit/test_health_check: Diagnostic checks
- unit/test_classification_nodes: Area and iteration nodes
- unit/test_token_service: Personal access token lifecycle
- unit/test_test_management: Plans, suites, runs and results
- unit/test_config: Environment configuration and deployment profiles
- unit/test_logger: Structured logging and redaction
- unit/test_integration_operations: Request-level operations
- integration/test_ado_integration: Full object graph over a scripted HTTP session
"""
