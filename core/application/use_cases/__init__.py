"""
Application use cases.
"""
from .integration_operations import IntegrationOperations, http_status_for

__all__ = ['IntegrationOperations', 'http_status_for']
