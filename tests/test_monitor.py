"""
mkcert状态监控器测试
"""
import pytest
import os
import json
from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

from mkcert_monitor.monitor import MkcertStatusMonitor, build_parser, main
from mkcert_monitor.interfaces import (
    CertificateExpiryResolverInterface,
    MkcertClientInterface,
    TrustStoreProbeInterface,
)
from mkcert_monitor.models import (
    CertificateExpiryResult,
    CertificateRecord,
    ExpiryProvenance,
    PlatformName,
    TrustFailureKind,
    TrustState,
    TrustStatus,
)
from mkcert_monitor.services.expiry_calculator import ExpiryCalculator
from mkcert_monitor.services.expiry_resolver import CertificateExpiryResolver
from mkcert_monitor.services.logger import LoggerService
from mkcert_monitor.services.monitor_config import MonitorConfig
from mkcert_monitor.services.trust_probe import LinuxTrustStoreProbe


NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_record(record_id, name, expires_at=None):
    return CertificateRecord(
        id=record_id,
        name=name,
        domains=[f"{name}.test"],
        path_cert=f"/certs/{name}.pem",
        path_key=f"/certs/{name}-key.pem",
        expires_at=expires_at
    )


class TestMkcertStatusMonitor:
    """mkcert状态监控器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.config = MonitorConfig(env={'CERT_PATH': '/srv/certs'})
        self.mkcert_client = MagicMock(spec=MkcertClientInterface)
        self.trust_probe = MagicMock(spec=TrustStoreProbeInterface)
        self.expiry_resolver = MagicMock(spec=CertificateExpiryResolverInterface)
        self.logger_service = MagicMock()

        self.monitor = MkcertStatusMonitor(
            config=self.config,
            mkcert_client=self.mkcert_client,
            trust_probe=self.trust_probe,
            expiry_resolver=self.expiry_resolver,
            expiry_calculator=ExpiryCalculator(warning_days=30, clock=lambda: NOW),
            logger_service=self.logger_service
        )

    def test_init_logs_configuration(self):
        """测试初始化时记录配置"""
        self.logger_service.log_configuration_info.assert_called_once_with(self.config.to_dict())

    def test_init_creates_default_services(self):
        """测试默认创建服务"""
        monitor = MkcertStatusMonitor(
            config=MonitorConfig(env={'TRUST_CA_MARKER': 'devca'}),
            logger_service=MagicMock(),
            platform_name="linux"
        )

        assert isinstance(monitor.trust_probe, LinuxTrustStoreProbe)
        assert monitor.trust_probe.pattern == 'devca*'
        assert isinstance(monitor.expiry_resolver, CertificateExpiryResolver)
        assert monitor.mkcert_client.binary == 'mkcert'

    def test_zero_max_attempts_still_builds_windows_probe(self):
        """测试尝试次数为0时使用默认值创建Windows检查器"""
        monitor = MkcertStatusMonitor(
            config=MonitorConfig(env={'TRUST_MAX_ATTEMPTS': '0'}),
            mkcert_client=MagicMock(),
            logger_service=MagicMock(),
            platform_name="windows"
        )

        assert monitor.trust_probe.error_handler.max_attempts == 3

    def test_get_status(self):
        """测试获取状态"""
        trust = TrustStatus(state=TrustState.TRUSTED, platform=PlatformName.WINDOWS, match_count=1, attempts=1)
        self.mkcert_client.get_version.return_value = "v1.4.4"
        self.mkcert_client.get_ca_root.return_value = "C:\\Users\\dev\\AppData\\Local\\mkcert"
        self.trust_probe.probe_trust.return_value = trust

        report = self.monitor.get_status()

        assert report.mkcert_version == "v1.4.4"
        assert report.root_ca == "C:\\Users\\dev\\AppData\\Local\\mkcert"
        assert report.cert_path == '/srv/certs'
        assert report.installed is True
        self.logger_service.log_trust_status.assert_called_once_with(trust)

    def test_get_status_mkcert_missing_and_check_failed(self):
        """测试mkcert不可用且信任检查失败"""
        self.mkcert_client.get_version.return_value = None
        self.mkcert_client.get_ca_root.return_value = None
        self.trust_probe.probe_trust.return_value = TrustStatus(
            state=TrustState.NOT_TRUSTED,
            platform=PlatformName.WINDOWS,
            attempts=3,
            failure_kind=TrustFailureKind.QUERY_FAILED,
            error_message="powershell not found"
        )

        report = self.monitor.get_status()
        data = report.to_dict()

        assert data['mkcert_version'] is None
        assert data['installed'] is False
        assert data['trust']['failure_kind'] == "query_failed"
        self.logger_service.logger.warning.assert_called_once()

    def test_reconcile_certificates(self):
        """测试补全缺少的过期时间"""
        records = [
            make_record(1, "known", "2027-01-01T00:00:00.000Z"),
            make_record(2, "unknown", "Unknown"),
            make_record(3, "empty"),
            make_record(4, "gone")
        ]
        results = {
            "/certs/unknown.pem": CertificateExpiryResult(
                "/certs/unknown.pem", ExpiryProvenance.PARSED, datetime(2027, 3, 1, tzinfo=timezone.utc)),
            "/certs/empty.pem": CertificateExpiryResult(
                "/certs/empty.pem", ExpiryProvenance.FALLBACK, datetime(2027, 9, 1, tzinfo=timezone.utc),
                error_message="ValueError: bad PEM"),
            "/certs/gone.pem": CertificateExpiryResult("/certs/gone.pem", ExpiryProvenance.NOT_FOUND, None)
        }
        self.expiry_resolver.resolve_expiry.side_effect = lambda path: results[path]

        result = self.monitor.reconcile_certificates(records)

        assert result.checked == 3
        assert result.updated == 2
        assert result.skipped == 1
        assert result.missing == 1
        assert result.execution_time >= 0
        assert records[0].expires_at == "2027-01-01T00:00:00.000Z"
        assert records[1].expires_at == "2027-03-01T00:00:00.000Z"
        assert records[1].expiry_provenance == ExpiryProvenance.PARSED
        assert records[2].expiry_provenance == ExpiryProvenance.FALLBACK
        assert records[3].expires_at is None
        self.logger_service.log_check_start.assert_called_once_with(4)
        self.logger_service.log_check_end.assert_called_once()
        assert self.logger_service.log_expiry_result.call_count == 3

    def test_reconcile_certificates_refresh(self):
        """测试强制重新解析"""
        records = [make_record(1, "known", "2027-01-01T00:00:00.000Z")]
        self.expiry_resolver.resolve_expiry.return_value = CertificateExpiryResult(
            "/certs/known.pem", ExpiryProvenance.PARSED, datetime(2028, 1, 1, tzinfo=timezone.utc))

        result = self.monitor.reconcile_certificates(records, refresh=True)

        assert result.skipped == 0
        assert result.updated == 1
        assert records[0].expires_at == "2028-01-01T00:00:00.000Z"

    def test_reconcile_certificates_resolver_error(self):
        """测试单个证书解析出错时记录错误并继续"""
        records = [make_record(1, "broken"), make_record(2, "fine")]
        error = OSError("stale NFS handle")

        def resolve(path):
            if path == "/certs/broken.pem":
                raise error
            return CertificateExpiryResult(path, ExpiryProvenance.PARSED, datetime(2027, 1, 1, tzinfo=timezone.utc))

        self.expiry_resolver.resolve_expiry.side_effect = resolve

        result = self.monitor.reconcile_certificates(records)

        assert result.errors == 1
        assert result.updated == 1
        assert records[0].expires_at is None
        assert records[1].expires_at == "2027-01-01T00:00:00.000Z"
        self.logger_service.log_error.assert_called_once_with("broken", error)
        self.logger_service.reset_stats.assert_called_once()

    def test_reconcile_certificates_execution_summary(self):
        """测试补全结果包含本次执行统计"""
        logger_service = LoggerService(logger_name="reconcile_summary_logger")
        monitor = MkcertStatusMonitor(
            config=self.config,
            mkcert_client=self.mkcert_client,
            trust_probe=self.trust_probe,
            expiry_resolver=self.expiry_resolver,
            logger_service=logger_service
        )
        self.expiry_resolver.resolve_expiry.return_value = CertificateExpiryResult(
            "/certs/gone.pem", ExpiryProvenance.NOT_FOUND, None)

        monitor.reconcile_certificates([make_record(1, "gone")])
        result = monitor.reconcile_certificates([make_record(2, "gone-again"), make_record(3, "gone-too")])

        assert result.execution_summary['total_certificates'] == 2
        assert result.execution_summary['missing'] == 2
        assert result.execution_summary['error_count'] == 0
        assert result.execution_summary['end_time'] is not None

    def test_reconcile_certificates_with_real_files(self, write_certificate, tmp_path):
        """测试使用真实证书文件补全过期时间"""
        cert_path = write_certificate("site.pem", datetime(2027, 3, 1, tzinfo=timezone.utc))
        monitor = MkcertStatusMonitor(
            config=self.config,
            mkcert_client=self.mkcert_client,
            trust_probe=self.trust_probe,
            logger_service=MagicMock()
        )
        records = [CertificateRecord(
            id=1, name="site", domains=["site.test"], path_cert=cert_path,
            path_key=str(tmp_path / "site-key.pem")
        )]

        monitor.reconcile_certificates(records)

        assert records[0].expires_at == "2027-03-01T00:00:00.000Z"
        assert records[0].expiry_provenance == ExpiryProvenance.PARSED

    def test_summarize_expiry(self):
        """测试汇总过期状态"""
        results = [
            CertificateExpiryResult("/certs/old.pem", ExpiryProvenance.PARSED, datetime(2025, 5, 1, tzinfo=timezone.utc)),
            CertificateExpiryResult("/certs/soon.pem", ExpiryProvenance.PARSED, datetime(2025, 6, 10, tzinfo=timezone.utc)),
            CertificateExpiryResult("/certs/gone.pem", ExpiryProvenance.NOT_FOUND, None)
        ]

        summary = self.monitor.summarize_expiry(results)

        assert summary['expired'] == ["/certs/old.pem"]
        assert summary['expiring_soon'] == ["/certs/soon.pem"]
        assert summary['missing'] == ["/certs/gone.pem"]
        assert len(summary['certificates']) == 3
        assert "总计: 3 个证书" in summary['summary']

    def test_scan_directory(self, tmp_path):
        """测试检查证书目录"""
        (tmp_path / "a.pem").write_text("x")
        (tmp_path / "a-key.pem").write_text("x")
        self.expiry_resolver.resolve_expiry.side_effect = lambda path: CertificateExpiryResult(
            path, ExpiryProvenance.PARSED, datetime(2027, 1, 1, tzinfo=timezone.utc))

        summary = self.monitor.scan_directory(str(tmp_path))

        self.expiry_resolver.resolve_expiry.assert_called_once_with(str(tmp_path / "a.pem"))
        assert summary['certificates'][0]['expires_at'] == "2027-01-01T00:00:00.000Z"


class TestCommandLine:
    """命令行入口测试类"""

    def test_build_parser(self):
        """测试参数解析"""
        args = build_parser().parse_args(["--platform", "windows", "expiry", "a.pem", "b.pem"])

        assert args.platform == "windows"
        assert args.command == "expiry"
        assert args.paths == ["a.pem", "b.pem"]

    def test_build_parser_requires_command(self):
        """测试缺少子命令"""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    @patch('mkcert_monitor.monitor.MkcertStatusMonitor')
    def test_main_status(self, mock_monitor_class, capsys):
        """测试status子命令"""
        mock_monitor_class.return_value.get_status.return_value.to_dict.return_value = {
            'mkcert_version': "v1.4.4",
            'installed': True
        }

        exit_code = main(["--platform", "linux", "status"])

        assert exit_code == 0
        mock_monitor_class.assert_called_once_with(platform_name="linux")
        output = json.loads(capsys.readouterr().out)
        assert output == {'mkcert_version': "v1.4.4", 'installed': True}

    def test_main_expiry(self, write_certificate, tmp_path, capsys):
        """测试expiry子命令"""
        cert_path = write_certificate("site.pem", datetime(2027, 3, 1, tzinfo=timezone.utc))
        missing_path = str(tmp_path / "missing.pem")

        with patch.dict(os.environ, {'CERT_PATH': str(tmp_path)}):
            exit_code = main(["--platform", "linux", "expiry", cert_path, missing_path])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output[0]['provenance'] == "parsed"
        assert output[0]['expires_at'] == "2027-03-01T00:00:00.000Z"
        assert output[1]['provenance'] == "not_found"
        assert output[1]['expires_at'] is None

    @patch('mkcert_monitor.monitor.MkcertStatusMonitor')
    def test_main_scan(self, mock_monitor_class, capsys):
        """测试scan子命令"""
        mock_monitor_class.return_value.scan_directory.return_value = {'summary': "总计: 0 个证书"}

        exit_code = main(["scan", "/srv/certs"])

        assert exit_code == 0
        mock_monitor_class.return_value.scan_directory.assert_called_once_with("/srv/certs")
        assert "总计: 0 个证书" in capsys.readouterr().out

    @patch('mkcert_monitor.services.config_validator.shutil.which', return_value="/usr/bin/mkcert")
    def test_main_config_valid(self, mock_which, capsys):
        """测试config子命令验证通过"""
        with patch.dict(os.environ, {}, clear=True):
            exit_code = main(["config"])

        assert exit_code == 0
        assert "配置验证通过" in capsys.readouterr().out

    @patch('mkcert_monitor.services.config_validator.shutil.which', return_value="/usr/bin/mkcert")
    def test_main_config_invalid(self, mock_which, capsys):
        """测试config子命令验证失败"""
        with patch.dict(os.environ, {'TRUST_MAX_ATTEMPTS': '0'}, clear=True):
            exit_code = main(["config"])

        assert exit_code == 1
        assert "配置验证失败" in capsys.readouterr().out
