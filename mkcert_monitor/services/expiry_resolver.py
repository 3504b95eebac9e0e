"""
证书过期时间解析服务
"""
import os
from datetime import datetime, timezone
from typing import Callable, Optional
import logging

from cryptography import x509
from dateutil.relativedelta import relativedelta

from ..interfaces import CertificateExpiryResolverInterface
from ..models import CertificateExpiryResult, ExpiryProvenance


# mkcert 默认签发 2 年 3 个月有效期的证书
FALLBACK_VALIDITY_YEARS = 2
FALLBACK_VALIDITY_MONTHS = 3


class CertificateExpiryResolver(CertificateExpiryResolverInterface):
    """证书过期时间解析器实现"""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, encoding: str = 'utf-8'):
        """
        初始化证书过期时间解析器

        Args:
            clock: 返回当前UTC时间的函数，默认使用系统时间
            encoding: 证书文件编码
        """
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.encoding = encoding
        self.logger = logging.getLogger(__name__)

    def resolve_expiry(self, path: str) -> CertificateExpiryResult:
        """
        解析证书文件的过期时间

        文件不存在时返回 not_found；读取或解析失败时返回按 mkcert 默认有效期
        估算的 fallback 结果，不会抛出异常。

        Args:
            path: PEM证书文件路径

        Returns:
            CertificateExpiryResult: 解析结果
        """
        path = os.fspath(path)

        if not os.path.exists(path):
            self.logger.warning(f"证书文件不存在: {path}")
            return CertificateExpiryResult(
                path=path,
                provenance=ExpiryProvenance.NOT_FOUND,
                expiry_date=None,
                error_message=f"证书文件不存在: {path}"
            )

        try:
            expiry_date = self._parse_expiry_date(self._read_certificate(path))
        except Exception as e:
            fallback = self.calculate_fallback_expiry()
            self.logger.warning(
                f"无法解析证书 {path} 的过期时间，使用估算值 {fallback.isoformat()}: "
                f"{type(e).__name__}: {str(e)}"
            )
            return CertificateExpiryResult(
                path=path,
                provenance=ExpiryProvenance.FALLBACK,
                expiry_date=fallback,
                error_message=f"{type(e).__name__}: {str(e)}"
            )

        self.logger.debug(f"证书 {path} 过期时间: {expiry_date.isoformat()}")
        return CertificateExpiryResult(
            path=path,
            provenance=ExpiryProvenance.PARSED,
            expiry_date=expiry_date
        )

    def calculate_fallback_expiry(self, now: Optional[datetime] = None) -> datetime:
        """
        计算估算的过期时间（先加年再加月）

        Args:
            now: 基准时间，默认为当前时间

        Returns:
            datetime: 估算的过期时间
        """
        now = now or self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now + relativedelta(years=FALLBACK_VALIDITY_YEARS) + relativedelta(months=FALLBACK_VALIDITY_MONTHS)

    def _read_certificate(self, path: str) -> str:
        with open(path, 'r', encoding=self.encoding) as f:
            return f.read()

    def _parse_expiry_date(self, pem_text: str) -> datetime:
        """
        解析PEM证书的过期时间

        Args:
            pem_text: PEM格式证书内容

        Returns:
            datetime: 过期时间（UTC）

        Raises:
            ValueError: 证书内容无效
        """
        cert = x509.load_pem_x509_certificate(pem_text.encode('ascii', errors='strict'))
        return cert.not_valid_after_utc
