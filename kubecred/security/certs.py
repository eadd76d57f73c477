"""
Certificate operations: key generation, signing and PEM encoding.

Decoding distinguishes an empty field (returns None) from content that is
present but cannot be parsed (raises ValueError), so callers can tell an
authority that was never provisioned from a corrupt one.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from .models import CertificateProfile

DEFAULT_KEY_SIZE = 2048
DEFAULT_CERT_DURATION = timedelta(days=365)


def new_private_key(key_size: int = DEFAULT_KEY_SIZE) -> rsa.RSAPrivateKey:
    """Generate a new RSA private key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def new_signed_cert(profile: CertificateProfile, key, ca_cert: x509.Certificate, ca_key,
                    duration: timedelta = DEFAULT_CERT_DURATION) -> x509.Certificate:
    """
    Sign a certificate for ``key`` with the given CA.

    Args:
        profile: Subject and extended key usages of the new certificate
        key: Private key whose public half is certified
        ca_cert: Issuing CA certificate
        ca_key: Issuing CA private key
        duration: Validity measured from now

    Returns:
        Signed certificate
    """
    now = datetime.now(timezone.utc)

    attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, org) for org in profile.organization]
    attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, profile.common_name))

    builder = x509.CertificateBuilder().subject_name(
        x509.Name(attributes)
    ).issuer_name(
        ca_cert.subject
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        # Validity starts with the issuing CA
        ca_cert.not_valid_before_utc
    ).not_valid_after(
        now + duration
    ).add_extension(
        x509.KeyUsage(
            digital_signature=True,
            content_commitment=False,
            key_encipherment=True,
            data_encipherment=False,
            key_agreement=False,
            key_cert_sign=False,
            crl_sign=False,
            encipher_only=False,
            decipher_only=False,
        ),
        critical=True,
    ).add_extension(
        x509.ExtendedKeyUsage(profile.usages),
        critical=False,
    )

    return builder.sign(ca_key, hashes.SHA256())


def encode_cert_pem(cert: x509.Certificate) -> bytes:
    """Encode a certificate as PEM."""
    return cert.public_bytes(serialization.Encoding.PEM)


def encode_private_key_pem(key) -> bytes:
    """Encode an RSA private key as PKCS#1 PEM."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption()
    )


def decode_cert_pem(data: Optional[bytes]) -> Optional[x509.Certificate]:
    """
    Decode the first certificate of a PEM bundle.

    Returns None when ``data`` is empty. Raises ValueError when it holds
    anything other than a parseable PEM certificate.
    """
    if not data or not data.strip():
        return None
    return x509.load_pem_x509_certificate(data)


def decode_private_key_pem(data: Optional[bytes]):
    """
    Decode an unencrypted PEM private key (PKCS#1, PKCS#8 or SEC1).

    Returns None when ``data`` is empty. Raises ValueError when it cannot be
    parsed.
    """
    if not data or not data.strip():
        return None
    try:
        return serialization.load_pem_private_key(data, password=None)
    except (TypeError, UnsupportedAlgorithm) as e:
        # Encrypted keys and key types the backend cannot load
        raise ValueError(f"unsupported private key: {e}") from e
