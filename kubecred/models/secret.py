"""
Secret records and the naming conventions used to address them.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ..errors import ErrorKind, KubeconfigError

CLUSTER_NAME_LABEL = "cluster.x-k8s.io/cluster-name"
CLUSTER_API_VERSION = "cluster.x-k8s.io/v1beta1"

TLS_CRT_DATA_NAME = "tls.crt"
TLS_KEY_DATA_NAME = "tls.key"
KUBECONFIG_DATA_NAME = "value"


class Purpose(str, Enum):
    """Suffix identifying what a cluster secret holds."""
    CLUSTER_CA = "ca"
    CLIENT_CLUSTER_CA = "cca"
    KUBECONFIG = "kubeconfig"


@dataclass(frozen=True)
class ObjectKey:
    """Namespace and name addressing a stored object."""
    namespace: str
    name: str

    def __str__(self):
        return f"{self.namespace}/{self.name}"


@dataclass
class OwnerReference:
    """Reference from a secret back to the object that owns it."""
    api_version: str
    kind: str
    name: str
    uid: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'apiVersion': self.api_version,
            'kind': self.kind,
            'name': self.name,
            'uid': self.uid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> 'OwnerReference':
        return cls(
            api_version=data['apiVersion'],
            kind=data['kind'],
            name=data['name'],
            uid=data['uid'],
        )


@dataclass
class ClusterRef:
    """The cluster a kubeconfig authenticates against."""
    name: str
    namespace: str
    uid: str
    host: str
    port: int = 6443

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @property
    def endpoint(self) -> str:
        """Control plane endpoint as host:port."""
        return f"{self.host}:{self.port}"

    def owner_reference(self) -> OwnerReference:
        return OwnerReference(
            api_version=CLUSTER_API_VERSION,
            kind="Cluster",
            name=self.name,
            uid=self.uid,
        )


@dataclass
class Secret:
    """Stored secret: addressing metadata plus a map of opaque byte values."""
    name: str
    namespace: str
    data: Dict[str, bytes] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    resource_version: Optional[int] = None

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)


def secret_name(cluster_name: str, purpose: Purpose) -> str:
    """Name of the secret holding ``purpose`` for ``cluster_name``."""
    return f"{cluster_name}-{Purpose(purpose).value}"


def parse_secret_name(name: str) -> Tuple[str, Purpose]:
    """
    Split a secret name into its cluster name and purpose.

    Exact inverse of secret_name(). Raises KubeconfigError with
    MALFORMED_RECORD_ADDRESS when the name was not produced by it.
    """
    cluster_name, sep, suffix = name.rpartition("-")
    if not sep or not cluster_name:
        raise KubeconfigError(
            ErrorKind.MALFORMED_RECORD_ADDRESS,
            f"{name!r} is not a valid cluster secret name"
        )
    try:
        purpose = Purpose(suffix)
    except ValueError as e:
        raise KubeconfigError(
            ErrorKind.MALFORMED_RECORD_ADDRESS,
            f"{name!r} has unknown secret purpose {suffix!r}",
            e
        )
    return cluster_name, purpose
