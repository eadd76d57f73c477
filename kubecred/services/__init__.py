"""
Services package for the kubeconfig credential service.
"""

from .config_service import ConfigService
from .secret_service import SecretService
from .kubeconfig_service import KubeconfigService

__all__ = [
    'ConfigService',
    'SecretService',
    'KubeconfigService'
]
