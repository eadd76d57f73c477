"""
In-memory kubeconfig document models.
"""
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Cluster:
    """Cluster entry: API server endpoint and its trust anchor."""
    server: str
    certificate_authority_data: bytes = b""
    proxy_url: str = ""


@dataclass
class Context:
    """Context entry tying a cluster entry to a user entry."""
    cluster: str
    user: str


@dataclass
class AuthInfo:
    """User entry holding a client certificate and its private key."""
    client_certificate_data: bytes = b""
    client_key_data: bytes = b""


@dataclass
class KubeConfig:
    """Kubeconfig document with named clusters, contexts and users."""
    clusters: Dict[str, Cluster] = field(default_factory=dict)
    contexts: Dict[str, Context] = field(default_factory=dict)
    users: Dict[str, AuthInfo] = field(default_factory=dict)
    current_context: str = ""

    def current(self) -> Context:
        """Return the context the current-context pointer refers to."""
        if self.current_context not in self.contexts:
            raise KeyError(f"current context {self.current_context!r} is not defined")
        return self.contexts[self.current_context]
