"""
mkcert状态监控入口
"""
import argparse
import json
import sys
import time
from typing import Any, Dict, List, Optional

from .interfaces import (
    CertificateExpiryResolverInterface,
    MkcertClientInterface,
    TrustStoreProbeInterface,
)
from .models import CertificateExpiryResult, CertificateRecord, ReconcileResult, StatusReport
from .services.config_validator import ConfigValidator
from .services.expiry_calculator import ExpiryCalculator
from .services.expiry_resolver import CertificateExpiryResolver
from .services.logger import LoggerService
from .services.mkcert_cli import MkcertCli
from .services.monitor_config import MonitorConfig
from .services.trust_probe import create_trust_probe


class MkcertStatusMonitor:
    """mkcert状态监控器主类"""

    def __init__(self, config: Optional[MonitorConfig] = None,
                 mkcert_client: Optional[MkcertClientInterface] = None,
                 trust_probe: Optional[TrustStoreProbeInterface] = None,
                 expiry_resolver: Optional[CertificateExpiryResolverInterface] = None,
                 expiry_calculator: Optional[ExpiryCalculator] = None,
                 logger_service: Optional[LoggerService] = None,
                 platform_name=None):
        """
        初始化监控器，所有服务都可以由调用方注入

        Args:
            config: 监控配置
            mkcert_client: mkcert客户端
            trust_probe: 信任库检查器，默认按当前平台创建
            expiry_resolver: 过期时间解析器
            expiry_calculator: 过期计算器
            logger_service: 日志服务
            platform_name: 创建默认信任库检查器时使用的平台
        """
        self.config = config or MonitorConfig()
        self.logger_service = logger_service or LoggerService(log_level=self.config.log_level)
        self.mkcert_client = mkcert_client or MkcertCli(
            binary=self.config.mkcert_binary,
            timeout=self.config.mkcert_timeout
        )
        self.trust_probe = trust_probe or create_trust_probe(
            platform_name,
            marker=self.config.ca_marker,
            max_attempts=self.config.trust_max_attempts,
            retry_delay=self.config.trust_retry_delay,
            query_timeout=self.config.trust_query_timeout
        )
        self.expiry_resolver = expiry_resolver or CertificateExpiryResolver()
        self.expiry_calculator = expiry_calculator or ExpiryCalculator(
            warning_days=self.config.expiry_warning_days
        )

        self.logger_service.log_configuration_info(self.config.to_dict())

    def get_status(self) -> StatusReport:
        """
        获取mkcert安装和根证书信任状态

        Returns:
            StatusReport: 状态报告
        """
        version = self.mkcert_client.get_version()
        root_ca = self.mkcert_client.get_ca_root()

        if version is None:
            self.logger_service.logger.warning(f"mkcert不可用: {self.config.mkcert_binary}")

        trust = self.trust_probe.probe_trust()
        self.logger_service.log_trust_status(trust)

        return StatusReport(
            mkcert_version=version,
            root_ca=root_ca,
            cert_path=self.config.cert_path,
            trust=trust
        )

    def reconcile_certificates(self, records: List[CertificateRecord], refresh: bool = False) -> ReconcileResult:
        """
        为缺少过期时间的证书记录补全过期时间

        Args:
            records: 证书记录
            refresh: 为True时重新解析所有记录

        Returns:
            ReconcileResult: 补全统计，records中的记录会被原地更新
        """
        start_time = time.monotonic()
        checked = updated = skipped = missing = errors = 0

        self.logger_service.reset_stats()
        self.logger_service.log_check_start(len(records))

        for record in records:
            if record.has_known_expiry and not refresh:
                skipped += 1
                continue

            checked += 1
            try:
                result = self.expiry_resolver.resolve_expiry(record.path_cert)
            except Exception as e:
                self.logger_service.log_error(record.name, e)
                errors += 1
                continue

            self.logger_service.log_expiry_result(record, result)

            if not result.is_found:
                missing += 1
                continue

            record.expires_at = result.timestamp
            record.expiry_provenance = result.provenance
            updated += 1

        self.logger_service.log_check_end()

        return ReconcileResult(
            checked=checked,
            updated=updated,
            skipped=skipped,
            missing=missing,
            records=records,
            execution_time=time.monotonic() - start_time,
            errors=errors,
            execution_summary=self.logger_service.get_execution_summary()
        )

    def resolve_paths(self, paths: List[str]) -> List[CertificateExpiryResult]:
        """解析多个证书文件的过期时间"""
        return [self.expiry_resolver.resolve_expiry(path) for path in paths]

    def summarize_expiry(self, results: List[CertificateExpiryResult]) -> Dict[str, Any]:
        """
        汇总过期状态

        Args:
            results: 过期时间解析结果

        Returns:
            Dict[str, Any]: 汇总信息
        """
        categorized = self.expiry_calculator.categorize_certificates(results)

        return {
            'summary': self.expiry_calculator.get_expiry_summary(results),
            'certificates': [result.to_dict() for result in results],
            'expired': [result.path for result in categorized['expired']],
            'expiring_soon': [result.path for result in categorized['expiring_soon']],
            'missing': [result.path for result in categorized['missing']]
        }

    def scan_directory(self, directory: Optional[str] = None) -> Dict[str, Any]:
        """检查证书目录中所有证书的过期状态"""
        paths = self.config.list_certificate_files(directory)
        return self.summarize_expiry(self.resolve_paths(paths))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mkcert-monitor",
        description="检查mkcert根证书信任状态和证书过期时间"
    )
    parser.add_argument(
        "--platform",
        choices=["windows", "linux", "macos"],
        help="信任库检查使用的平台，默认为当前系统"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("status", help="显示mkcert和根证书状态")

    expiry_parser = subparsers.add_parser("expiry", help="解析证书文件的过期时间")
    expiry_parser.add_argument("paths", nargs="+", help="PEM证书文件")

    scan_parser = subparsers.add_parser("scan", help="检查证书目录")
    scan_parser.add_argument("directory", nargs="?", help="证书目录，默认为CERT_PATH")

    subparsers.add_parser("config", help="验证环境变量配置")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    命令行入口

    Args:
        argv: 命令行参数

    Returns:
        int: 退出码
    """
    args = build_parser().parse_args(argv)

    if args.command == "config":
        validator = ConfigValidator()
        print(validator.get_configuration_summary())
        return 0 if validator.validate_all_configurations()['is_valid'] else 1

    monitor = MkcertStatusMonitor(platform_name=args.platform)

    if args.command == "status":
        output = monitor.get_status().to_dict()
    elif args.command == "expiry":
        output = [result.to_dict() for result in monitor.resolve_paths(args.paths)]
    else:
        output = monitor.scan_directory(args.directory)

    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
