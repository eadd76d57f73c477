"""
Models package for the kubeconfig credential service.
"""

from .database import SecretRecord, DatabaseManager, get_database_manager
from .kubeconfig import KubeConfig, Cluster, Context, AuthInfo
from .secret import Secret, ObjectKey, OwnerReference, ClusterRef, Purpose, secret_name, parse_secret_name

__all__ = [
    'SecretRecord',
    'DatabaseManager',
    'get_database_manager',
    'KubeConfig',
    'Cluster',
    'Context',
    'AuthInfo',
    'Secret',
    'ObjectKey',
    'OwnerReference',
    'ClusterRef',
    'Purpose',
    'secret_name',
    'parse_secret_name'
]
