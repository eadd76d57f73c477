"""
Kubeconfig YAML encoding and decoding.

Documents use the clientcmd v1 layout so they load with kubectl and other
standard tooling: named lists of clusters, contexts and users, with
certificate and key PEM embedded as base64 strings.
"""
import base64
import binascii
from typing import Tuple

import yaml

from ..errors import ErrorKind, KubeconfigError
from ..models.kubeconfig import KubeConfig, Cluster, Context, AuthInfo
from ..models.secret import Secret, KUBECONFIG_DATA_NAME


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def _unb64(value) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value, validate=True)


def to_dict(config: KubeConfig) -> dict:
    """Convert a KubeConfig to its clientcmd v1 mapping."""
    clusters = []
    for name, cluster in config.clusters.items():
        entry = {'server': cluster.server}
        if cluster.certificate_authority_data:
            entry['certificate-authority-data'] = _b64(cluster.certificate_authority_data)
        if cluster.proxy_url:
            entry['proxy-url'] = cluster.proxy_url
        clusters.append({'name': name, 'cluster': entry})

    contexts = [
        {'name': name, 'context': {'cluster': ctx.cluster, 'user': ctx.user}}
        for name, ctx in config.contexts.items()
    ]

    users = []
    for name, auth in config.users.items():
        entry = {}
        if auth.client_certificate_data:
            entry['client-certificate-data'] = _b64(auth.client_certificate_data)
        if auth.client_key_data:
            entry['client-key-data'] = _b64(auth.client_key_data)
        users.append({'name': name, 'user': entry})

    return {
        'apiVersion': 'v1',
        'kind': 'Config',
        'clusters': clusters,
        'contexts': contexts,
        'current-context': config.current_context,
        'preferences': {},
        'users': users,
    }


def from_dict(doc: dict) -> KubeConfig:
    """Build a KubeConfig from a clientcmd v1 mapping."""
    if not isinstance(doc, dict):
        raise ValueError("kubeconfig document must be a mapping")

    config = KubeConfig(current_context=doc.get('current-context') or "")

    for item in doc.get('clusters') or []:
        entry = item.get('cluster') or {}
        config.clusters[item['name']] = Cluster(
            server=entry.get('server', ""),
            certificate_authority_data=_unb64(entry.get('certificate-authority-data')),
            proxy_url=entry.get('proxy-url') or ""
        )

    for item in doc.get('contexts') or []:
        entry = item.get('context') or {}
        config.contexts[item['name']] = Context(
            cluster=entry.get('cluster', ""),
            user=entry.get('user', "")
        )

    for item in doc.get('users') or []:
        entry = item.get('user') or {}
        config.users[item['name']] = AuthInfo(
            client_certificate_data=_unb64(entry.get('client-certificate-data')),
            client_key_data=_unb64(entry.get('client-key-data'))
        )

    return config


def write(config: KubeConfig) -> bytes:
    """
    Serialize a kubeconfig to YAML bytes.

    Raises:
        KubeconfigError: SERIALIZATION_FAILURE if the document cannot be encoded
    """
    try:
        return yaml.safe_dump(to_dict(config), default_flow_style=False, sort_keys=True).encode('utf-8')
    except (yaml.YAMLError, TypeError, ValueError, AttributeError) as e:
        raise KubeconfigError(ErrorKind.SERIALIZATION_FAILURE, "failed to serialize config to yaml", e)


def load(data: bytes) -> KubeConfig:
    """
    Deserialize kubeconfig YAML bytes.

    Raises:
        KubeconfigError: DESERIALIZATION_FAILURE if the payload is malformed
    """
    try:
        return from_dict(yaml.safe_load(data))
    except (yaml.YAMLError, UnicodeDecodeError, binascii.Error, KeyError, TypeError, ValueError, AttributeError) as e:
        raise KubeconfigError(
            ErrorKind.DESERIALIZATION_FAILURE,
            "failed to convert kubeconfig secret into a kubeconfig",
            e
        )


def to_kubeconfig_bytes(secret: Secret) -> bytes:
    """
    Return the kubeconfig payload stored in a secret.

    Raises:
        KubeconfigError: PAYLOAD_FIELD_MISSING if the secret has no payload field
    """
    data = secret.data.get(KUBECONFIG_DATA_NAME)
    if data is None:
        raise KubeconfigError(
            ErrorKind.PAYLOAD_FIELD_MISSING,
            f"missing key {KUBECONFIG_DATA_NAME!r} in secret data"
        )
    return data


def cluster_endpoint(config: KubeConfig, cluster_name: str) -> Tuple[str, str]:
    """
    Return the (server, proxy_url) of the named cluster entry.

    Raises:
        KubeconfigError: DESERIALIZATION_FAILURE if the entry is missing
    """
    cluster = config.clusters.get(cluster_name)
    if cluster is None:
        raise KubeconfigError(
            ErrorKind.DESERIALIZATION_FAILURE,
            f"kubeconfig has no cluster entry named {cluster_name!r}"
        )
    return cluster.server, cluster.proxy_url


def current_cluster_name(config: KubeConfig) -> str:
    """
    Return the name of the cluster the current context points at.

    Raises:
        KubeconfigError: DESERIALIZATION_FAILURE if the pointer does not resolve
    """
    try:
        return config.current().cluster
    except KeyError as e:
        raise KubeconfigError(ErrorKind.DESERIALIZATION_FAILURE, "kubeconfig current context is invalid", e)
