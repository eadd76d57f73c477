"""
Certificate models used when issuing kubeconfig client identities.
"""
from dataclasses import dataclass, field
from typing import List

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import ExtendedKeyUsageOID


@dataclass
class CertificateAuthority:
    """A certificate and the private key that signs with it."""
    certificate: x509.Certificate
    private_key: object


@dataclass
class CertificateProfile:
    """Subject and usages applied to a newly signed certificate."""
    common_name: str
    organization: List[str] = field(default_factory=list)
    usages: List[x509.ObjectIdentifier] = field(
        default_factory=lambda: [ExtendedKeyUsageOID.CLIENT_AUTH]
    )


@dataclass
class ClientIdentity:
    """Freshly generated private key plus its signed certificate."""
    private_key: RSAPrivateKey
    certificate: x509.Certificate
