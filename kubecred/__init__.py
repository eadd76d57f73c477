"""
kubecred - cluster-admin kubeconfig issuance and client certificate rotation.
"""

__version__ = "0.1.0"
