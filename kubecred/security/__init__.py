"""
Security package for certificate generation and PEM handling.
"""
from .models import CertificateAuthority, CertificateProfile, ClientIdentity
from .certs import (
    new_private_key,
    new_signed_cert,
    encode_cert_pem,
    encode_private_key_pem,
    decode_cert_pem,
    decode_private_key_pem,
)

__all__ = [
    'CertificateAuthority',
    'CertificateProfile',
    'ClientIdentity',
    'new_private_key',
    'new_signed_cert',
    'encode_cert_pem',
    'encode_private_key_pem',
    'decode_cert_pem',
    'decode_private_key_pem',
]
