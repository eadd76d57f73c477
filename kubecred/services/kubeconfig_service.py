"""
Kubeconfig issuance and client certificate rotation.

Every function that touches storage takes the store as an explicit
argument. A store needs ``get(ObjectKey) -> Secret`` raising NotFoundError,
``create(Secret)`` raising AlreadyExistsError and ``update(Secret)``;
SecretService is the database-backed implementation.

Rotation is a read-modify-write of the kubeconfig secret. It is only safe
against concurrent rotations of the same secret when the store's update()
compares resource versions, as SecretService does.
"""
import dataclasses
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm

from ..errors import ErrorKind, KubeconfigError, NotFoundError
from ..models.config import Config
from ..models.kubeconfig import KubeConfig, Cluster, Context, AuthInfo
from ..models.secret import (
    Secret, ObjectKey, OwnerReference, ClusterRef, Purpose,
    CLUSTER_NAME_LABEL, TLS_CRT_DATA_NAME, TLS_KEY_DATA_NAME, KUBECONFIG_DATA_NAME,
    secret_name, parse_secret_name,
)
from ..security.certs import (
    DEFAULT_CERT_DURATION, DEFAULT_KEY_SIZE,
    new_private_key, new_signed_cert, encode_cert_pem, encode_private_key_pem,
    decode_cert_pem, decode_private_key_pem,
)
from ..security.models import CertificateAuthority, CertificateProfile, ClientIdentity
from . import kubeconfig_codec

logger = logging.getLogger(__name__)

ADMIN_COMMON_NAME = "kubernetes-admin"
ADMIN_ORGANIZATION = "system:masters"


def user_name_for(cluster_name: str) -> str:
    return f"{cluster_name}-admin"


def context_name_for(cluster_name: str) -> str:
    return f"{user_name_for(cluster_name)}@{cluster_name}"


def new_client_identity(client_ca: CertificateAuthority,
                        validity: timedelta = DEFAULT_CERT_DURATION,
                        key_size: int = DEFAULT_KEY_SIZE) -> ClientIdentity:
    """
    Generate a key and sign a cluster-admin client certificate for it.

    Raises:
        KubeconfigError: SIGNING_FAILURE naming the step that failed
    """
    profile = CertificateProfile(
        common_name=ADMIN_COMMON_NAME,
        organization=[ADMIN_ORGANIZATION]
    )

    try:
        client_key = new_private_key(key_size)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KubeconfigError(ErrorKind.SIGNING_FAILURE, "unable to create private key", e)

    try:
        client_cert = new_signed_cert(
            profile, client_key, client_ca.certificate, client_ca.private_key, validity
        )
    except (ValueError, TypeError, AttributeError, UnsupportedAlgorithm) as e:
        raise KubeconfigError(ErrorKind.SIGNING_FAILURE, "unable to sign certificate", e)

    return ClientIdentity(private_key=client_key, certificate=client_cert)


def new_kubeconfig(cluster_name: str, endpoint: str, client_ca_cert, client_ca_key,
                   server_ca_cert, proxy_url: Optional[str] = None,
                   validity: timedelta = DEFAULT_CERT_DURATION,
                   key_size: int = DEFAULT_KEY_SIZE) -> KubeConfig:
    """
    Build a kubeconfig for the cluster-admin user of ``cluster_name``.

    Args:
        cluster_name: Cluster entry name, also the base of the user and context names
        endpoint: API server URL
        client_ca_cert: Certificate of the CA that signs the client identity
        client_ca_key: Private key of that CA
        server_ca_cert: CA certificate the API server's certificate chains to
        proxy_url: Optional proxy for reaching the API server
        validity: Client certificate lifetime
        key_size: RSA key size of the client key

    Returns:
        KubeConfig with exactly one cluster, user and context
    """
    identity = new_client_identity(
        CertificateAuthority(certificate=client_ca_cert, private_key=client_ca_key),
        validity,
        key_size
    )

    user_name = user_name_for(cluster_name)
    context_name = context_name_for(cluster_name)

    return KubeConfig(
        clusters={
            cluster_name: Cluster(
                server=endpoint,
                certificate_authority_data=encode_cert_pem(server_ca_cert),
                proxy_url=proxy_url or ""
            )
        },
        contexts={
            context_name: Context(cluster=cluster_name, user=user_name)
        },
        users={
            user_name: AuthInfo(
                client_certificate_data=encode_cert_pem(identity.certificate),
                client_key_data=encode_private_key_pem(identity.private_key)
            )
        },
        current_context=context_name
    )


def _get_authority_secret(store, cluster_key: ObjectKey, purpose: Purpose) -> Secret:
    key = ObjectKey(cluster_key.namespace, secret_name(cluster_key.name, purpose))
    try:
        return store.get(key)
    except NotFoundError as e:
        raise KubeconfigError(
            ErrorKind.DEPENDENT_AUTHORITY_NOT_FOUND,
            f"could not find secret {key}",
            e
        )


def _decode_certificate(secret: Secret):
    try:
        cert = decode_cert_pem(secret.data.get(TLS_CRT_DATA_NAME))
    except ValueError as e:
        raise KubeconfigError(
            ErrorKind.CERTIFICATE_DECODE_FAILURE,
            f"failed to decode CA certificate in secret {secret.key}",
            e
        )
    if cert is None:
        raise KubeconfigError(
            ErrorKind.CERTIFICATE_ABSENT,
            f"CA certificate not found in secret {secret.key}"
        )
    return cert


def _decode_private_key(secret: Secret):
    try:
        key = decode_private_key_pem(secret.data.get(TLS_KEY_DATA_NAME))
    except ValueError as e:
        raise KubeconfigError(
            ErrorKind.PRIVATE_KEY_DECODE_FAILURE,
            f"failed to decode CA private key in secret {secret.key}",
            e
        )
    if key is None:
        raise KubeconfigError(
            ErrorKind.PRIVATE_KEY_ABSENT,
            f"CA private key not found in secret {secret.key}"
        )
    return key


def generate_kubeconfig(store, cluster_key: ObjectKey, endpoint: str,
                        proxy_url: Optional[str] = None,
                        validity: timedelta = DEFAULT_CERT_DURATION,
                        key_size: int = DEFAULT_KEY_SIZE) -> bytes:
    """
    Issue a new cluster-admin kubeconfig and return it serialized.

    Both CA secrets are fetched and decoded before any key is generated.
    Nothing is written to the store.

    Args:
        store: Secret store to read the cluster's CA secrets from
        cluster_key: Namespace and name of the cluster
        endpoint: API server URL including scheme
        proxy_url: Optional proxy URL

    Raises:
        KubeconfigError: On a missing, empty or corrupt CA, or a signing
            or serialization failure
    """
    cluster_ca = _get_authority_secret(store, cluster_key, Purpose.CLUSTER_CA)
    client_ca = _get_authority_secret(store, cluster_key, Purpose.CLIENT_CLUSTER_CA)

    client_ca_cert = _decode_certificate(client_ca)
    client_ca_key = _decode_private_key(client_ca)
    server_ca_cert = _decode_certificate(cluster_ca)

    try:
        config = new_kubeconfig(
            cluster_key.name, endpoint, client_ca_cert, client_ca_key, server_ca_cert,
            proxy_url, validity, key_size
        )
    except KubeconfigError as e:
        raise KubeconfigError(e.kind, f"failed to generate a kubeconfig for {cluster_key}", e)

    return kubeconfig_codec.write(config)


def generate_secret_with_owner(cluster_key: ObjectKey, data: bytes, owner: OwnerReference) -> Secret:
    """Wrap kubeconfig bytes in a secret owned by ``owner``."""
    return Secret(
        name=secret_name(cluster_key.name, Purpose.KUBECONFIG),
        namespace=cluster_key.namespace,
        labels={CLUSTER_NAME_LABEL: cluster_key.name},
        owner_references=[owner],
        data={KUBECONFIG_DATA_NAME: data}
    )


def generate_secret(cluster: ClusterRef, data: bytes) -> Secret:
    """Wrap kubeconfig bytes in a secret owned by ``cluster``."""
    return generate_secret_with_owner(cluster.key, data, cluster.owner_reference())


def create_secret_with_owner(store, cluster_key: ObjectKey, endpoint: str, owner: OwnerReference,
                             proxy_url: Optional[str] = None,
                             validity: timedelta = DEFAULT_CERT_DURATION,
                             key_size: int = DEFAULT_KEY_SIZE) -> Secret:
    """
    Issue a kubeconfig and store it in a new secret.

    ``endpoint`` is host:port; it is served over https. The store refuses
    to overwrite an existing secret and raises AlreadyExistsError.
    """
    server = endpoint if "://" in endpoint else f"https://{endpoint}"
    out = generate_kubeconfig(store, cluster_key, server, proxy_url, validity, key_size)
    secret = store.create(generate_secret_with_owner(cluster_key, out, owner))
    logger.info(f"Issued kubeconfig for cluster {cluster_key}")
    return secret


def create_secret(store, cluster: ClusterRef, proxy_url: Optional[str] = None,
                  validity: timedelta = DEFAULT_CERT_DURATION,
                  key_size: int = DEFAULT_KEY_SIZE) -> Secret:
    """Issue a kubeconfig for ``cluster`` and store it in a new secret."""
    return create_secret_with_owner(
        store, cluster.key, cluster.endpoint, cluster.owner_reference(),
        proxy_url, validity, key_size
    )


def needs_client_cert_rotation(secret: Secret, threshold: timedelta,
                               now: Optional[datetime] = None) -> bool:
    """
    Return whether any client certificate in a kubeconfig secret expires
    within ``threshold``.

    A certificate whose remaining validity equals the threshold does not
    need rotation yet.
    """
    now = now or datetime.now(timezone.utc)

    config = kubeconfig_codec.load(kubeconfig_codec.to_kubeconfig_bytes(secret))

    for user_name, auth_info in config.users.items():
        try:
            cert = decode_cert_pem(auth_info.client_certificate_data)
        except ValueError as e:
            raise KubeconfigError(
                ErrorKind.CERTIFICATE_DECODE_FAILURE,
                f"failed to decode kubeconfig client certificate of user {user_name!r}",
                e
            )
        if cert is None:
            raise KubeconfigError(
                ErrorKind.CERTIFICATE_ABSENT,
                f"certificate not found in config for user {user_name!r}"
            )
        if cert.not_valid_after_utc - now < threshold:
            return True

    return False


def regenerate_secret(store, secret: Secret,
                      validity: timedelta = DEFAULT_CERT_DURATION,
                      key_size: int = DEFAULT_KEY_SIZE) -> Secret:
    """
    Replace the kubeconfig in ``secret`` with a freshly signed one.

    The endpoint and proxy URL are carried over from the existing payload.
    Only the payload field changes. A copy of the secret is written back with
    store.update(); ``secret`` itself is left untouched.
    """
    cluster_name, _ = parse_secret_name(secret.name)

    config = kubeconfig_codec.load(kubeconfig_codec.to_kubeconfig_bytes(secret))
    endpoint, proxy_url = kubeconfig_codec.cluster_endpoint(config, cluster_name)

    key = ObjectKey(secret.namespace, cluster_name)
    out = generate_kubeconfig(store, key, endpoint, proxy_url, validity, key_size)

    rotated = dataclasses.replace(secret, data={**secret.data, KUBECONFIG_DATA_NAME: out})
    updated = store.update(rotated)
    logger.info(f"Rotated kubeconfig client certificate for cluster {key}")
    return updated


class KubeconfigService:
    """Kubeconfig lifecycle operations bound to a store and configuration."""

    def __init__(self, secret_service, config: Optional[Config] = None,
                 logging_service: Optional['LoggingService'] = None):
        """
        Initialize the kubeconfig service.

        Args:
            secret_service: Secret store
            config: Certificate validity, key size and rotation threshold
            logging_service: Optional service for performance and error tracking
        """
        self.secret_service = secret_service
        self.config = config or Config()
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)

    def _run(self, operation: str, cluster_key: ObjectKey, func, *args, **kwargs):
        extra = {'cluster': str(cluster_key)}
        try:
            if self.logging_service:
                with self.logging_service.measure_performance(operation, extra):
                    return func(*args, **kwargs)
            return func(*args, **kwargs)
        except KubeconfigError as e:
            if e.awaiting_dependency:
                self.logger.warning(f"{operation} for {cluster_key} waiting on certificate authority: {e}")
            else:
                self.logger.error(f"{operation} for {cluster_key} failed ({e.kind.value}): {e}")
            if self.logging_service:
                self.logging_service.track_error(e, {**extra, 'kind': e.kind.value})
            raise

    def issue(self, cluster: ClusterRef, proxy_url: Optional[str] = None) -> Secret:
        """Issue and store a kubeconfig for ``cluster``."""
        return self.issue_for(cluster.key, cluster.endpoint, cluster.owner_reference(), proxy_url)

    def issue_for(self, cluster_key: ObjectKey, endpoint: str, owner: OwnerReference,
                  proxy_url: Optional[str] = None) -> Secret:
        """Issue and store a kubeconfig for the cluster at ``cluster_key``."""
        return self._run(
            'issue_kubeconfig', cluster_key, create_secret_with_owner,
            self.secret_service, cluster_key, endpoint, owner, proxy_url,
            self.config.cert_validity, self.config.key_size
        )

    def get_secret(self, cluster_key: ObjectKey) -> Secret:
        """Get the kubeconfig secret of a cluster."""
        return self.secret_service.get(
            ObjectKey(cluster_key.namespace, secret_name(cluster_key.name, Purpose.KUBECONFIG))
        )

    def get_kubeconfig(self, cluster_key: ObjectKey) -> bytes:
        """Get the stored kubeconfig YAML of a cluster."""
        return kubeconfig_codec.to_kubeconfig_bytes(self.get_secret(cluster_key))

    def needs_rotation(self, cluster_key: ObjectKey, threshold: Optional[timedelta] = None) -> bool:
        """Check whether the cluster's kubeconfig client certificate is due for rotation."""
        if threshold is None:
            threshold = self.config.rotation_threshold
        secret = self.get_secret(cluster_key)
        return self._run('check_kubeconfig_rotation', cluster_key, needs_client_cert_rotation, secret, threshold)

    def rotate(self, cluster_key: ObjectKey) -> Secret:
        """Re-issue the cluster's kubeconfig in place."""
        secret = self.get_secret(cluster_key)
        return self._run(
            'rotate_kubeconfig', cluster_key, regenerate_secret,
            self.secret_service, secret, self.config.cert_validity, self.config.key_size
        )
