"""
监控配置管理服务
"""
import os
from typing import Dict, List, Mapping, Optional, Any
import logging

from .trust_probe import DEFAULT_CA_MARKER


DEFAULT_CERT_PATH = os.path.join(os.path.expanduser("~"), ".mkcert-monitor", "certs")
KEY_FILE_SUFFIX = "-key.pem"


class MonitorConfig:
    """从环境变量读取的监控配置"""

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        """
        初始化配置

        Args:
            env: 环境变量，默认为 os.environ
        """
        self.env = os.environ if env is None else env
        self.logger = logging.getLogger(__name__)

        self.cert_path = self.env.get('CERT_PATH') or DEFAULT_CERT_PATH
        self.mkcert_binary = self.env.get('MKCERT_BINARY') or 'mkcert'
        self.log_level = (self.env.get('LOG_LEVEL') or 'INFO').upper()
        self.ca_marker = self.env.get('TRUST_CA_MARKER') or DEFAULT_CA_MARKER
        self.trust_max_attempts = self._get_int('TRUST_MAX_ATTEMPTS', 3, minimum=1)
        self.trust_retry_delay = self._get_float('TRUST_RETRY_DELAY', 1.0, minimum=0.0)
        self.trust_query_timeout = self._get_float('TRUST_QUERY_TIMEOUT', 5.0, minimum=0.1)
        self.mkcert_timeout = self._get_float('MKCERT_TIMEOUT', 30.0, minimum=1.0)
        self.expiry_warning_days = self._get_int('EXPIRY_WARNING_DAYS', 30, minimum=0)

    def _get_int(self, name: str, default: int, minimum: int) -> int:
        value = self.env.get(name)
        if not value:
            return default
        try:
            number = int(value)
        except ValueError:
            self.logger.warning(f"环境变量 {name} 不是有效的整数: {value}，使用默认值 {default}")
            return default
        return self._check_minimum(name, number, default, minimum)

    def _get_float(self, name: str, default: float, minimum: float) -> float:
        value = self.env.get(name)
        if not value:
            return default
        try:
            number = float(value)
        except ValueError:
            self.logger.warning(f"环境变量 {name} 不是有效的数字: {value}，使用默认值 {default}")
            return default
        return self._check_minimum(name, number, default, minimum)

    def _check_minimum(self, name: str, number, default, minimum):
        # NaN 也按无效处理
        if not number >= minimum:
            self.logger.warning(f"环境变量 {name} 小于最小值 {minimum}: {number}，使用默认值 {default}")
            return default
        return number

    def list_certificate_files(self, directory: Optional[str] = None) -> List[str]:
        """
        列出证书目录中的证书文件（不包括私钥）

        Args:
            directory: 证书目录，默认为 cert_path

        Returns:
            List[str]: 证书文件路径
        """
        directory = directory or self.cert_path

        if not os.path.isdir(directory):
            self.logger.warning(f"证书目录不存在: {directory}")
            return []

        files = [
            os.path.join(directory, name)
            for name in sorted(os.listdir(directory))
            if name.endswith('.pem') and not name.endswith(KEY_FILE_SUFFIX)
        ]

        self.logger.info(f"在 {directory} 中找到 {len(files)} 个证书文件")
        return files

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cert_path': self.cert_path,
            'mkcert_binary': self.mkcert_binary,
            'log_level': self.log_level,
            'ca_marker': self.ca_marker,
            'trust_max_attempts': self.trust_max_attempts,
            'trust_retry_delay': self.trust_retry_delay,
            'trust_query_timeout': self.trust_query_timeout,
            'mkcert_timeout': self.mkcert_timeout,
            'expiry_warning_days': self.expiry_warning_days
        }
