"""
数据模型定义
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


UNKNOWN_EXPIRY = "Unknown"


def format_timestamp(value: datetime) -> str:
    """
    格式化为毫秒精度的ISO-8601 UTC时间字符串

    Args:
        value: 时间（无时区信息时按UTC处理）

    Returns:
        str: 例如 2027-03-01T00:00:00.000Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S') + f".{value.microsecond // 1000:03d}Z"


class ExpiryProvenance(str, Enum):
    """过期时间来源"""
    PARSED = "parsed"
    FALLBACK = "fallback"
    NOT_FOUND = "not_found"


@dataclass
class CertificateExpiryResult:
    """证书过期时间解析结果"""
    path: str
    provenance: ExpiryProvenance
    expiry_date: Optional[datetime]
    error_message: Optional[str] = None

    @property
    def timestamp(self) -> Optional[str]:
        """ISO-8601格式的过期时间，文件不存在时为None"""
        if self.expiry_date is None:
            return None
        return format_timestamp(self.expiry_date)

    @property
    def is_parsed(self) -> bool:
        return self.provenance == ExpiryProvenance.PARSED

    @property
    def is_fallback(self) -> bool:
        """过期时间是否为估算值"""
        return self.provenance == ExpiryProvenance.FALLBACK

    @property
    def is_found(self) -> bool:
        return self.provenance != ExpiryProvenance.NOT_FOUND

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'provenance': self.provenance.value,
            'expires_at': self.timestamp,
            'error_message': self.error_message
        }


class PlatformName(str, Enum):
    """支持的操作系统"""
    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"


class TrustState(str, Enum):
    """根证书信任状态"""
    TRUSTED = "trusted"
    NOT_TRUSTED = "not_trusted"
    UNKNOWN = "unknown"


class TrustFailureKind(str, Enum):
    """信任检查失败类型"""
    QUERY_FAILED = "query_failed"
    TIMEOUT = "timeout"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    CANCELLED = "cancelled"


@dataclass
class TrustStatus:
    """根证书信任检查结果"""
    state: TrustState
    platform: PlatformName
    match_count: Optional[int] = None
    stores_checked: List[str] = field(default_factory=list)
    attempts: int = 0
    failure_kind: Optional[TrustFailureKind] = None
    error_message: Optional[str] = None

    @property
    def is_trusted(self) -> bool:
        return self.state == TrustState.TRUSTED

    @property
    def check_failed(self) -> bool:
        """检查本身是否失败（区别于确认未信任）"""
        return self.failure_kind is not None

    def as_legacy_bool(self) -> bool:
        """
        兼容旧接口的布尔值

        Returns:
            bool: 只有确认信任时为True
        """
        return self.is_trusted

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'platform': self.platform.value,
            'match_count': self.match_count,
            'stores_checked': list(self.stores_checked),
            'attempts': self.attempts,
            'failure_kind': self.failure_kind.value if self.failure_kind else None,
            'error_message': self.error_message
        }


@dataclass
class CertificateRecord:
    """证书记录（由外部服务持久化）"""
    id: int
    name: str
    domains: List[str]
    path_cert: str
    path_key: str
    expires_at: Optional[str] = None
    expiry_provenance: Optional[ExpiryProvenance] = None

    @property
    def has_known_expiry(self) -> bool:
        return bool(self.expires_at) and self.expires_at != UNKNOWN_EXPIRY


@dataclass
class StatusReport:
    """mkcert安装状态报告"""
    mkcert_version: Optional[str]
    root_ca: Optional[str]
    cert_path: str
    trust: TrustStatus
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def installed(self) -> bool:
        """根证书是否已安装并受信任"""
        return self.trust.as_legacy_bool()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mkcert_version': self.mkcert_version,
            'root_ca': self.root_ca,
            'cert_path': self.cert_path,
            'installed': self.installed,
            'trust': self.trust.to_dict(),
            'generated_at': format_timestamp(self.generated_at)
        }


@dataclass
class ReconcileResult:
    """过期时间补全统计"""
    checked: int
    updated: int
    skipped: int
    missing: int
    records: List[CertificateRecord]
    execution_time: float
    errors: int = 0
    execution_summary: Dict[str, Any] = field(default_factory=dict)
