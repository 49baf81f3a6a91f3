"""
Configuration management - externalized and extensible.
"""
from .deployment import ApiVersions, BUILTIN_PROFILES, load_profiles, resolve_profile
from .environment import EnvironmentConfig, MAX_BATCH_SIZE

__all__ = [
    'ApiVersions',
    'BUILTIN_PROFILES',
    'load_profiles',
    'resolve_profile',
    'EnvironmentConfig',
    'MAX_BATCH_SIZE',
]
