"""
证书过期计算服务
"""
from datetime import datetime, timezone
from typing import Callable, List, Optional
from ..models import CertificateExpiryResult


class ExpiryCalculator:
    """证书过期计算器"""

    def __init__(self, warning_days: int = 30, clock: Optional[Callable[[], datetime]] = None):
        """
        初始化过期计算器

        Args:
            warning_days: 提前警告天数，默认30天
            clock: 返回当前UTC时间的函数
        """
        self.warning_days = warning_days
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def calculate_days_until_expiry(self, expiry_date: datetime) -> int:
        """
        计算距离过期的天数

        Args:
            expiry_date: 过期时间

        Returns:
            int: 剩余天数（负数表示已过期）
        """
        if expiry_date.tzinfo is None:
            expiry_date = expiry_date.replace(tzinfo=timezone.utc)
        delta = expiry_date - self.clock()
        return delta.days

    def is_expiring_soon(self, result: CertificateExpiryResult) -> bool:
        """
        判断证书是否即将过期（在警告期内）

        Args:
            result: 过期时间解析结果

        Returns:
            bool: 是否即将过期
        """
        if result.expiry_date is None:
            return False
        return 0 <= self.calculate_days_until_expiry(result.expiry_date) <= self.warning_days

    def is_expired(self, result: CertificateExpiryResult) -> bool:
        """
        判断证书是否已过期

        Args:
            result: 过期时间解析结果

        Returns:
            bool: 是否已过期
        """
        if result.expiry_date is None:
            return False
        return self.calculate_days_until_expiry(result.expiry_date) < 0

    def categorize_certificates(self, results: List[CertificateExpiryResult]) -> dict:
        """
        对证书进行分类

        估算的过期时间单独计数，但仍参与过期分类。

        Args:
            results: 过期时间解析结果列表

        Returns:
            dict: 分类结果
        """
        found = [result for result in results if result.is_found]

        return {
            'total': len(results),
            'parsed': len([result for result in found if result.is_parsed]),
            'estimated': len([result for result in found if result.is_fallback]),
            'missing': [result for result in results if not result.is_found],
            'expired': [result for result in found if self.is_expired(result)],
            'expiring_soon': [result for result in found if self.is_expiring_soon(result)],
            'healthy': [result for result in found
                        if not self.is_expired(result) and not self.is_expiring_soon(result)]
        }

    def get_expiry_summary(self, results: List[CertificateExpiryResult]) -> str:
        """
        获取过期状态摘要

        Args:
            results: 过期时间解析结果列表

        Returns:
            str: 摘要信息
        """
        categorized = self.categorize_certificates(results)

        summary_parts = [
            f"总计: {categorized['total']} 个证书",
            f"已解析: {categorized['parsed']} 个",
            f"估算: {categorized['estimated']} 个"
        ]

        if categorized['missing']:
            summary_parts.append(f"文件缺失: {len(categorized['missing'])} 个")

        if categorized['expired']:
            summary_parts.append(f"已过期: {len(categorized['expired'])} 个")

        if categorized['expiring_soon']:
            summary_parts.append(f"即将过期({self.warning_days}天内): {len(categorized['expiring_soon'])} 个")

        if categorized['healthy']:
            summary_parts.append(f"健康: {len(categorized['healthy'])} 个")

        return ", ".join(summary_parts)
