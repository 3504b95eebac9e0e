"""
测试公共夹具
"""
import pytest
from datetime import datetime, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def build_certificate_pem(not_after: datetime, common_name: str = "example.test",
                          not_before: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> str:
    """生成自签名证书的PEM文本"""
    private_key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "mkcert development certificate"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name)
    ])

    builder = x509.CertificateBuilder()
    builder = builder.subject_name(name)
    builder = builder.issuer_name(name)
    builder = builder.not_valid_before(not_before)
    builder = builder.not_valid_after(not_after)
    builder = builder.serial_number(x509.random_serial_number())
    builder = builder.public_key(private_key.public_key())
    builder = builder.add_extension(
        x509.SubjectAlternativeName([x509.DNSName(common_name)]),
        critical=False
    )
    cert = builder.sign(private_key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.PEM).decode('ascii')


@pytest.fixture
def write_certificate(tmp_path):
    """在临时目录中写入证书文件，返回路径"""
    def _write(filename: str, not_after: datetime, common_name: str = "example.test") -> str:
        path = tmp_path / filename
        path.write_text(build_certificate_pem(not_after, common_name), encoding='utf-8')
        return str(path)

    return _write
