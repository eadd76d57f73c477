#!/usr/bin/env python3
"""
Demonstration script issuing, checking and rotating a kubeconfig.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

# Add the project root to the Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from kubecred.models.config import Config
from kubecred.models.database import get_database_manager
from kubecred.models.secret import Secret, ClusterRef, TLS_CRT_DATA_NAME, TLS_KEY_DATA_NAME
from kubecred.security.certs import new_private_key, encode_cert_pem, encode_private_key_pem
from kubecred.services.kubeconfig_service import KubeconfigService
from kubecred.services.secret_service import SecretService


def make_ca(common_name):
    """Create a self-signed CA. Real clusters get theirs from the control plane provider."""
    key = new_private_key()
    now = datetime.now(timezone.utc)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = x509.CertificateBuilder().subject_name(name).issuer_name(name).public_key(
        key.public_key()
    ).serial_number(x509.random_serial_number()).not_valid_before(now).not_valid_after(
        now + timedelta(days=3650)
    ).add_extension(
        x509.BasicConstraints(ca=True, path_length=None), critical=True
    ).sign(key, hashes.SHA256())
    return {TLS_CRT_DATA_NAME: encode_cert_pem(cert), TLS_KEY_DATA_NAME: encode_private_key_pem(key)}


def main():
    """Demonstrate the kubeconfig lifecycle."""
    print("=== kubecred Demo ===\n")

    db_path = os.path.join(tempfile.mkdtemp(), 'kubecred_demo.db')
    db_manager = get_database_manager(f"sqlite:///{db_path}")
    db_manager.create_tables()
    secret_service = SecretService(db_manager)

    print("1. Provisioning cluster CAs...")
    secret_service.create(Secret(name='demo-ca', namespace='default', data=make_ca('demo-ca')))
    secret_service.create(Secret(name='demo-cca', namespace='default', data=make_ca('demo-client-ca')))

    service = KubeconfigService(secret_service, Config(cert_validity_days=30, rotation_threshold_days=10))
    cluster = ClusterRef(name='demo', namespace='default', uid='0b6c9a3e', host='10.0.0.1')

    print("2. Issuing kubeconfig...")
    secret = service.issue(cluster)
    print(f"   Stored in {secret.namespace}/{secret.name}\n")
    print(service.get_kubeconfig(cluster.key).decode('utf-8'))

    print("3. Checking rotation...")
    print(f"   Due with default threshold: {service.needs_rotation(cluster.key)}")
    print(f"   Due within 60 days: {service.needs_rotation(cluster.key, timedelta(days=60))}\n")

    print("4. Rotating...")
    secret = service.rotate(cluster.key)
    print(f"   Secret now at version {secret.resource_version}")

    print(f"\nDemo database: {db_path}")


if __name__ == "__main__":
    main()
