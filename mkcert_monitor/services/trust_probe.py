"""
系统信任库检查服务

每个平台一个实现，由 create_trust_probe 在启动时选择一次。
"""
import fnmatch
import os
import platform
import threading
from typing import Iterable, List, Optional
import logging

from ..interfaces import TrustStoreProbeInterface, StoreQueryInterface
from ..models import PlatformName, TrustState, TrustStatus, TrustFailureKind
from .error_handler import CommandErrorHandler
from .store_query import PowerShellStoreQuery, CURRENT_USER, LOCAL_MACHINE


DEFAULT_CA_MARKER = "mkcert"

# mkcert -install 在各发行版写入根证书的目录
LINUX_ANCHOR_DIRECTORIES = (
    "/usr/local/share/ca-certificates",
    "/etc/pki/ca-trust/source/anchors",
    "/etc/ca-certificates/trust-source/anchors",
    "/usr/share/pki/trust/anchors",
)


class WindowsTrustStoreProbe(TrustStoreProbeInterface):
    """Windows根证书存储检查器"""

    def __init__(self, store_query: Optional[StoreQueryInterface] = None, marker: str = DEFAULT_CA_MARKER,
                 max_attempts: int = 3, retry_delay: float = 1.0, query_timeout: float = 5.0,
                 cancel_event: Optional[threading.Event] = None):
        """
        初始化Windows检查器

        Args:
            store_query: 证书存储查询器，默认使用PowerShell
            marker: 根证书主题标记
            max_attempts: 最大尝试次数
            retry_delay: 重试间隔（秒），安装后系统存储会异步更新
            query_timeout: 单次查询超时时间（秒）
            cancel_event: 外部取消信号
        """
        self.store_query = store_query or PowerShellStoreQuery(timeout=query_timeout)
        self.marker = marker
        self.cancel_event = cancel_event
        self.error_handler = CommandErrorHandler(
            max_attempts=max_attempts,
            base_delay=retry_delay,
            cancel_event=cancel_event
        )
        self.logger = logging.getLogger(__name__)

    def probe_trust(self) -> TrustStatus:
        """
        检查CurrentUser和LocalMachine根证书存储

        Returns:
            TrustStatus: 检查结果，任何错误都会被转换为结果而不是抛出
        """
        attempts = 0
        stores_checked: List[str] = []

        if self.cancel_event is not None and self.cancel_event.is_set():
            return self._cancelled_status(attempts, stores_checked)

        def attempt() -> TrustStatus:
            nonlocal attempts
            attempts += 1

            for store_location in (CURRENT_USER, LOCAL_MACHINE):
                if store_location not in stores_checked:
                    stores_checked.append(store_location)

                count = self.store_query.count_matching(store_location, self.marker)
                if count > 0:
                    return self._status(TrustState.TRUSTED, count, stores_checked, attempts)

            return self._status(TrustState.NOT_TRUSTED, 0, stores_checked, attempts)

        try:
            status = self.error_handler.with_retry(attempt, retry_if=lambda result: not result.is_trusted)
        except Exception as e:
            error_info = self.error_handler.handle_command_error("Get-ChildItem Cert:\\*\\Root", e)
            failure_kind = self.error_handler.classify_failure(e)

            if failure_kind == TrustFailureKind.CANCELLED:
                return self._cancelled_status(attempts, stores_checked)

            self.logger.error(
                f"Windows信任库检查失败（{attempts} 次尝试）: {error_info['error_message']}"
            )
            return TrustStatus(
                state=TrustState.NOT_TRUSTED,
                platform=PlatformName.WINDOWS,
                stores_checked=list(stores_checked),
                attempts=attempts,
                failure_kind=failure_kind,
                error_message=error_info['error_message']
            )

        if status.is_trusted:
            self.logger.info(f"根证书受信任 - 第 {attempts} 次尝试, 匹配数量: {status.match_count}")
        else:
            self.logger.info(f"经过 {attempts} 次尝试未在信任库中找到根证书")

        return status

    def _status(self, state: TrustState, count: int, stores_checked: List[str], attempts: int) -> TrustStatus:
        return TrustStatus(
            state=state,
            platform=PlatformName.WINDOWS,
            match_count=count,
            stores_checked=list(stores_checked),
            attempts=attempts
        )

    def _cancelled_status(self, attempts: int, stores_checked: List[str]) -> TrustStatus:
        self.logger.warning("Windows信任库检查已取消")
        return TrustStatus(
            state=TrustState.UNKNOWN,
            platform=PlatformName.WINDOWS,
            stores_checked=list(stores_checked),
            attempts=attempts,
            failure_kind=TrustFailureKind.CANCELLED,
            error_message="检查已被取消"
        )


class LinuxTrustStoreProbe(TrustStoreProbeInterface):
    """Linux系统证书目录检查器"""

    def __init__(self, anchor_directories: Iterable[str] = LINUX_ANCHOR_DIRECTORIES,
                 marker: str = DEFAULT_CA_MARKER):
        """
        初始化Linux检查器

        Args:
            anchor_directories: 系统信任锚目录
            marker: 根证书文件名前缀
        """
        self.anchor_directories = list(anchor_directories)
        self.pattern = f"{marker}*"
        self.logger = logging.getLogger(__name__)

    def probe_trust(self) -> TrustStatus:
        """
        检查信任锚目录中是否存在mkcert根证书文件，只检查一次

        Returns:
            TrustStatus: 检查结果
        """
        matches: List[str] = []
        checked: List[str] = []
        read_errors: List[str] = []

        for directory in self.anchor_directories:
            if not os.path.isdir(directory):
                continue

            checked.append(directory)
            try:
                names = sorted(os.listdir(directory))
            except OSError as e:
                self.logger.error(f"读取系统证书目录 {directory} 失败: {type(e).__name__}: {str(e)}")
                read_errors.append(f"{directory}: {str(e)}")
                continue

            matches.extend(
                os.path.join(directory, name)
                for name in names
                if fnmatch.fnmatch(name, self.pattern)
            )

        if matches:
            self.logger.info(f"找到 {len(matches)} 个根证书文件: {', '.join(matches)}")
            return TrustStatus(
                state=TrustState.TRUSTED,
                platform=PlatformName.LINUX,
                match_count=len(matches),
                stores_checked=checked,
                attempts=1
            )

        if read_errors:
            return TrustStatus(
                state=TrustState.NOT_TRUSTED,
                platform=PlatformName.LINUX,
                stores_checked=checked,
                attempts=1,
                failure_kind=TrustFailureKind.QUERY_FAILED,
                error_message="; ".join(read_errors)
            )

        self.logger.info("系统证书目录中未找到根证书文件")
        return TrustStatus(
            state=TrustState.NOT_TRUSTED,
            platform=PlatformName.LINUX,
            match_count=0,
            stores_checked=checked,
            attempts=1
        )


class MacOSTrustStoreProbe(TrustStoreProbeInterface):
    """macOS检查器（尚未支持）"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def probe_trust(self) -> TrustStatus:
        # TODO: 通过 security find-certificate 查询 System.keychain
        self.logger.warning("macOS信任库检查尚未支持")
        return TrustStatus(
            state=TrustState.UNKNOWN,
            platform=PlatformName.MACOS,
            failure_kind=TrustFailureKind.UNSUPPORTED_PLATFORM,
            error_message="macOS信任库检查尚未支持"
        )


def detect_platform(system: Optional[str] = None) -> PlatformName:
    """
    识别当前操作系统

    Args:
        system: platform.system() 的返回值，默认读取当前系统

    Returns:
        PlatformName: 平台名称

    Raises:
        ValueError: 不支持的操作系统
    """
    system = system or platform.system()
    mapping = {
        'windows': PlatformName.WINDOWS,
        'linux': PlatformName.LINUX,
        'darwin': PlatformName.MACOS,
        'macos': PlatformName.MACOS
    }

    try:
        return mapping[system.lower()]
    except KeyError:
        raise ValueError(f"不支持的操作系统: {system}")


def create_trust_probe(platform_name=None, marker: str = DEFAULT_CA_MARKER, max_attempts: int = 3,
                       retry_delay: float = 1.0, query_timeout: float = 5.0,
                       store_query: Optional[StoreQueryInterface] = None,
                       cancel_event: Optional[threading.Event] = None) -> TrustStoreProbeInterface:
    """
    按平台创建信任库检查器

    Args:
        platform_name: PlatformName 或字符串，默认为当前系统
        marker: 根证书主题标记
        max_attempts: Windows最大尝试次数
        retry_delay: Windows重试间隔（秒）
        query_timeout: Windows单次查询超时时间（秒）
        store_query: 自定义Windows证书存储查询器
        cancel_event: 外部取消信号

    Returns:
        TrustStoreProbeInterface: 检查器实例
    """
    if platform_name is None:
        platform_name = detect_platform()
    elif not isinstance(platform_name, PlatformName):
        platform_name = detect_platform(str(platform_name))

    if platform_name == PlatformName.WINDOWS:
        return WindowsTrustStoreProbe(
            store_query=store_query,
            marker=marker,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            query_timeout=query_timeout,
            cancel_event=cancel_event
        )
    if platform_name == PlatformName.LINUX:
        return LinuxTrustStoreProbe(marker=marker)
    return MacOSTrustStoreProbe()
