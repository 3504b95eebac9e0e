"""
证书过期时间解析器测试
"""
import pytest
from unittest.mock import patch
from datetime import datetime, timezone, timedelta

from mkcert_monitor.services.expiry_resolver import CertificateExpiryResolver
from mkcert_monitor.models import CertificateExpiryResult, ExpiryProvenance


FIXED_NOW = datetime(2024, 1, 15, tzinfo=timezone.utc)


class TestCertificateExpiryResolver:
    """证书过期时间解析器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.resolver = CertificateExpiryResolver(clock=lambda: FIXED_NOW)

    def test_resolve_expiry_parsed(self, write_certificate):
        """测试解析有效证书"""
        path = write_certificate("example.pem", datetime(2027, 3, 1, tzinfo=timezone.utc))

        result = self.resolver.resolve_expiry(path)

        assert isinstance(result, CertificateExpiryResult)
        assert result.provenance == ExpiryProvenance.PARSED
        assert result.is_parsed is True
        assert result.timestamp == "2027-03-01T00:00:00.000Z"
        assert result.expiry_date == datetime(2027, 3, 1, tzinfo=timezone.utc)
        assert result.error_message is None

    def test_resolve_expiry_exact_not_after(self, write_certificate):
        """测试返回值与证书中的过期时间完全一致"""
        not_after = datetime(2026, 7, 9, 13, 45, 30, tzinfo=timezone.utc)
        path = write_certificate("exact.pem", not_after)

        result = self.resolver.resolve_expiry(path)

        assert result.expiry_date == not_after
        assert result.timestamp == "2026-07-09T13:45:30.000Z"

    def test_resolve_expiry_accepts_path_objects(self, write_certificate):
        """测试支持Path对象"""
        from pathlib import Path

        path = Path(write_certificate("pathlike.pem", datetime(2027, 3, 1, tzinfo=timezone.utc)))

        result = self.resolver.resolve_expiry(path)

        assert result.is_parsed is True
        assert result.path == str(path)

    def test_resolve_expiry_corrupt_text(self, tmp_path):
        """测试非PEM内容返回估算值"""
        path = tmp_path / "corrupt.pem"
        path.write_text("this is not a certificate", encoding='utf-8')

        result = self.resolver.resolve_expiry(str(path))

        assert result.provenance == ExpiryProvenance.FALLBACK
        assert result.is_fallback is True
        assert result.timestamp == "2026-04-15T00:00:00.000Z"
        assert result.error_message

    def test_resolve_expiry_non_utf8_bytes(self, tmp_path):
        """测试无法解码的二进制内容返回估算值"""
        path = tmp_path / "binary.pem"
        path.write_bytes(b"\x00\xff\xfe\x81garbage")

        result = self.resolver.resolve_expiry(str(path))

        assert result.provenance == ExpiryProvenance.FALLBACK
        assert result.timestamp == "2026-04-15T00:00:00.000Z"
        assert "UnicodeDecodeError" in result.error_message

    def test_resolve_expiry_truncated_pem(self, tmp_path):
        """测试被截断的PEM证书"""
        path = tmp_path / "truncated.pem"
        path.write_text(
            "-----BEGIN CERTIFICATE-----\nMIIBszCCAVmgAwIBAgIU\n-----END CERTIFICATE-----\n",
            encoding='utf-8'
        )

        result = self.resolver.resolve_expiry(str(path))

        assert result.is_fallback is True

    def test_resolve_expiry_missing_file(self, tmp_path):
        """测试文件不存在时返回not_found而不是估算值"""
        path = str(tmp_path / "missing.pem")

        result = self.resolver.resolve_expiry(path)

        assert result.provenance == ExpiryProvenance.NOT_FOUND
        assert result.is_found is False
        assert result.expiry_date is None
        assert result.timestamp is None
        assert path in result.error_message

    def test_resolve_expiry_directory(self, tmp_path):
        """测试路径为目录时按读取失败处理"""
        result = self.resolver.resolve_expiry(str(tmp_path))

        assert result.provenance == ExpiryProvenance.FALLBACK

    def test_resolve_expiry_read_error(self, tmp_path):
        """测试读取错误不会抛出异常"""
        path = tmp_path / "locked.pem"
        path.write_text("placeholder", encoding='utf-8')

        with patch.object(self.resolver, '_read_certificate', side_effect=PermissionError("Permission denied")):
            result = self.resolver.resolve_expiry(str(path))

        assert result.is_fallback is True
        assert "PermissionError" in result.error_message

    def test_fallback_adds_years_before_months(self):
        """测试先加年再加月（闰日）"""
        leap_day = datetime(2024, 2, 29, 8, 30, tzinfo=timezone.utc)

        fallback = self.resolver.calculate_fallback_expiry(leap_day)

        # 2024-02-29 + 2年 = 2026-02-28，再加3个月 = 2026-05-28
        assert fallback == datetime(2026, 5, 28, 8, 30, tzinfo=timezone.utc)

    def test_fallback_month_end_rollover(self):
        """测试月末日期的处理"""
        fallback = self.resolver.calculate_fallback_expiry(datetime(2023, 11, 30, tzinfo=timezone.utc))

        assert fallback == datetime(2026, 2, 28, tzinfo=timezone.utc)

    def test_fallback_naive_datetime_treated_as_utc(self):
        """测试无时区信息的时间按UTC处理"""
        fallback = self.resolver.calculate_fallback_expiry(datetime(2024, 1, 15))

        assert fallback.tzinfo == timezone.utc
        assert fallback == datetime(2026, 4, 15, tzinfo=timezone.utc)

    def test_fallback_uses_current_time_by_default(self, tmp_path):
        """测试默认使用当前时间"""
        resolver = CertificateExpiryResolver()
        path = tmp_path / "corrupt.pem"
        path.write_text("garbage", encoding='utf-8')

        before = datetime.now(timezone.utc)
        result = resolver.resolve_expiry(str(path))

        expected = resolver.calculate_fallback_expiry(before)
        assert abs(result.expiry_date - expected) < timedelta(seconds=5)
