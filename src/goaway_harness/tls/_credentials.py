#
# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import datetime
import ipaddress
import os
import ssl
import tempfile
from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from goaway_harness.common import constants
from goaway_harness.exceptions import CertificateError

__all__ = [
    "TLSCredentials",
    "generate_self_signed",
    "create_server_ssl_context",
    "create_client_ssl_context",
]

_KEY_SIZE = 2048
_DEFAULT_VALIDITY = datetime.timedelta(hours=1)


@dataclass(frozen=True)
class TLSCredentials:
    """A PEM-encoded private key and the certificate it signed."""

    key_pem: bytes
    cert_pem: bytes

    def write(self, directory: str) -> tuple[str, str]:
        """Write the certificate and key into ``directory`` and return their paths (cert, key)."""
        cert_path = os.path.join(directory, "server.crt")
        key_path = os.path.join(directory, "server.key")
        with open(cert_path, "wb") as f:
            f.write(self.cert_pem)
        with open(key_path, "wb") as f:
            f.write(self.key_pem)
        return cert_path, key_path


def generate_self_signed(
    hostname: str = constants.DEFAULT_HOSTNAME,
    ip: str = constants.DEFAULT_HOST,
    validity: datetime.timedelta = _DEFAULT_VALIDITY,
) -> TLSCredentials:
    """Issue an ephemeral self-signed certificate for loopback testing.

    The certificate names ``hostname`` as its subject and lists both ``hostname`` and ``ip``
    as subject alternative names, so clients can verify it when connecting by either.

    Raises:
        CertificateError: If key generation or signing fails, or ``ip`` is not an address.
    """
    try:
        key = rsa.generate_private_key(public_exponent=65537, key_size=_KEY_SIZE)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hostname)])
        now = datetime.datetime.now(datetime.timezone.utc)

        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(minutes=1))
            .not_valid_after(now + validity)
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName(hostname), x509.IPAddress(ipaddress.ip_address(ip))]),
                critical=False,
            )
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(x509.ExtendedKeyUsage([x509.oid.ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
            .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()), critical=False)
            .sign(key, hashes.SHA256())
        )
    except ValueError as e:
        raise CertificateError(f"Failed to generate self-signed certificate: {e}") from e

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    return TLSCredentials(key_pem=key_pem, cert_pem=cert_pem)


def create_server_ssl_context(credentials: TLSCredentials) -> ssl.SSLContext:
    """Build a server-side context that only negotiates HTTP/2 through ALPN.

    Raises:
        CertificateError: If the key pair cannot be loaded.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.options |= ssl.OP_NO_COMPRESSION
    context.set_alpn_protocols([constants.ALPN_H2])

    # load_cert_chain only accepts file paths
    with tempfile.TemporaryDirectory(prefix=f"{constants.HARNESS}-") as tmp:
        cert_path, key_path = credentials.write(tmp)
        try:
            context.load_cert_chain(certfile=cert_path, keyfile=key_path)
        except ssl.SSLError as e:
            raise CertificateError(f"Failed to load certificate chain: {e}") from e
    return context


def create_client_ssl_context(credentials: Optional[TLSCredentials] = None) -> ssl.SSLContext:
    """Build a client-side context that trusts the harness certificate.

    Without credentials, verification is disabled entirely.
    """
    if credentials is None:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context
    return ssl.create_default_context(cadata=credentials.cert_pem.decode(constants.UTF_8))
