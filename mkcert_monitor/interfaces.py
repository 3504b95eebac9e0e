"""
服务接口定义
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from .models import CertificateExpiryResult, TrustStatus, CertificateRecord


class CertificateExpiryResolverInterface(ABC):
    """证书过期时间解析器接口"""

    @abstractmethod
    def resolve_expiry(self, path: str) -> CertificateExpiryResult:
        """解析证书文件的过期时间"""
        pass


class TrustStoreProbeInterface(ABC):
    """系统信任库检查器接口"""

    @abstractmethod
    def probe_trust(self) -> TrustStatus:
        """检查本地根证书是否受信任"""
        pass


class StoreQueryInterface(ABC):
    """证书存储查询接口"""

    @abstractmethod
    def count_matching(self, store_location: str, marker: str) -> int:
        """统计存储中主题包含标记的证书数量"""
        pass


class MkcertClientInterface(ABC):
    """mkcert命令行客户端接口"""

    @abstractmethod
    def get_version(self) -> Optional[str]:
        """获取mkcert版本"""
        pass

    @abstractmethod
    def get_ca_root(self) -> Optional[str]:
        """获取CAROOT目录"""
        pass

    @abstractmethod
    def create_certificate(self, domains: List[str], output_dir: str, name: Optional[str] = None) -> dict:
        """生成证书"""
        pass


class LoggerServiceInterface(ABC):
    """日志服务接口"""

    @abstractmethod
    def log_check_start(self, certificate_count: int):
        """记录检查开始"""
        pass

    @abstractmethod
    def log_expiry_result(self, record: CertificateRecord, result: CertificateExpiryResult):
        """记录过期时间解析结果"""
        pass

    @abstractmethod
    def log_trust_status(self, status: TrustStatus):
        """记录信任检查结果"""
        pass

    @abstractmethod
    def log_error(self, subject: str, error: Exception):
        """记录错误信息"""
        pass
