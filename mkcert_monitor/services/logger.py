"""
日志服务
"""
import os
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from ..interfaces import LoggerServiceInterface
from ..models import CertificateExpiryResult, CertificateRecord, TrustStatus, TrustState


class LoggerService(LoggerServiceInterface):
    """日志服务实现"""

    def __init__(self, logger_name: str = "mkcert_monitor", log_level: Optional[str] = None):
        """
        初始化日志服务

        Args:
            logger_name: 日志器名称
            log_level: 日志级别，如果为None则从环境变量读取
        """
        self.logger_name = logger_name
        self.log_level = log_level or os.getenv('LOG_LEVEL', 'INFO')

        self.logger = logging.getLogger(logger_name)
        self._configure_logger()

        self.execution_stats = self._empty_stats()

    def _empty_stats(self) -> Dict[str, Any]:
        return {
            'start_time': None,
            'end_time': None,
            'total_certificates': 0,
            'parsed': 0,
            'estimated': 0,
            'missing': 0,
            'errors': []
        }

    def _configure_logger(self):
        """配置日志器"""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # 避免重复添加处理器
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(level)

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)

            self.logger.addHandler(handler)

        self.logger.propagate = False

    def log_check_start(self, certificate_count: int):
        """
        记录检查开始

        Args:
            certificate_count: 要检查的证书数量
        """
        self.execution_stats['start_time'] = datetime.now(timezone.utc)
        self.execution_stats['total_certificates'] = certificate_count

        self.logger.info(f"开始检查证书过期时间，共 {certificate_count} 个证书")

    def log_expiry_result(self, record: CertificateRecord, result: CertificateExpiryResult):
        """
        记录过期时间解析结果

        Args:
            record: 证书记录
            result: 解析结果
        """
        if result.is_parsed:
            self.execution_stats['parsed'] += 1
            self.logger.info(f"证书过期时间 - 名称: {record.name}, 过期时间: {result.timestamp}")
        elif result.is_fallback:
            self.execution_stats['estimated'] += 1
            self.logger.warning(
                f"证书过期时间为估算值 - 名称: {record.name}, "
                f"估算时间: {result.timestamp}, "
                f"原因: {result.error_message}"
            )
        else:
            self.execution_stats['missing'] += 1
            self.logger.error(f"证书文件不存在 - 名称: {record.name}, 路径: {result.path}")

    def log_trust_status(self, status: TrustStatus):
        """
        记录信任检查结果

        Args:
            status: 信任检查结果
        """
        stores = ", ".join(status.stores_checked) or "无"

        if status.state == TrustState.TRUSTED:
            self.logger.info(
                f"根证书受信任 - 平台: {status.platform.value}, "
                f"匹配数量: {status.match_count}, 检查的存储: {stores}"
            )
        elif status.check_failed:
            self.logger.warning(
                f"根证书信任检查失败 - 平台: {status.platform.value}, "
                f"状态: {status.state.value}, "
                f"失败类型: {status.failure_kind.value}, "
                f"错误: {status.error_message}"
            )
        else:
            self.logger.info(
                f"根证书未受信任 - 平台: {status.platform.value}, "
                f"尝试次数: {status.attempts}, 检查的存储: {stores}"
            )

    def log_error(self, subject: str, error: Exception):
        """
        记录错误信息

        Args:
            subject: 出错的对象（证书名称或命令）
            error: 异常对象
        """
        error_info = {
            'subject': subject,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

        self.execution_stats['errors'].append(error_info)

        self.logger.error(f"{subject} 处理时发生错误: {type(error).__name__}: {str(error)}")
        self.logger.debug(f"{subject} 错误堆栈跟踪:\n{traceback.format_exc()}")

    def log_check_end(self):
        """记录检查结束"""
        self.execution_stats['end_time'] = datetime.now(timezone.utc)

        self.logger.info(
            f"证书检查完成: 总计 {self.execution_stats['total_certificates']} 个, "
            f"已解析 {self.execution_stats['parsed']} 个, "
            f"估算 {self.execution_stats['estimated']} 个, "
            f"文件缺失 {self.execution_stats['missing']} 个, "
            f"错误 {len(self.execution_stats['errors'])} 个"
        )

    def log_configuration_info(self, config: Dict[str, Any]):
        """
        记录配置信息

        Args:
            config: 配置信息字典
        """
        safe_config = self._sanitize_config(config)

        self.logger.info("系统配置信息:")
        for key, value in safe_config.items():
            self.logger.info(f"  {key}: {value}")

    def _sanitize_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        清理配置信息中的敏感数据

        Args:
            config: 原始配置

        Returns:
            Dict[str, Any]: 清理后的配置
        """
        sensitive_names = {'password', 'secret', 'token', 'credential', 'key'}
        sensitive_suffixes = ('_key', '_secret', '_password', '_token')

        safe_config = {}
        for key, value in config.items():
            key_lower = key.lower()
            is_sensitive = key_lower in sensitive_names or key_lower.endswith(sensitive_suffixes)

            if is_sensitive and isinstance(value, str) and value:
                safe_config[key] = value[:3] + "***" if len(value) > 3 else "***"
            else:
                safe_config[key] = value

        return safe_config

    def get_execution_summary(self) -> Dict[str, Any]:
        """
        获取执行摘要

        Returns:
            Dict[str, Any]: 执行摘要信息
        """
        stats = self.execution_stats
        duration = 0
        if stats['start_time'] and stats['end_time']:
            duration = (stats['end_time'] - stats['start_time']).total_seconds()

        return {
            'start_time': stats['start_time'].isoformat() if stats['start_time'] else None,
            'end_time': stats['end_time'].isoformat() if stats['end_time'] else None,
            'duration_seconds': duration,
            'total_certificates': stats['total_certificates'],
            'parsed': stats['parsed'],
            'estimated': stats['estimated'],
            'missing': stats['missing'],
            'error_count': len(stats['errors']),
            'errors': stats['errors']
        }

    def reset_stats(self):
        """重置执行统计"""
        self.execution_stats = self._empty_stats()
