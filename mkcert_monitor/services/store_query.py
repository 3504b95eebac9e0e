"""
Windows证书存储查询服务
"""
import subprocess
from typing import List
import logging

from ..interfaces import StoreQueryInterface


CURRENT_USER = "CurrentUser"
LOCAL_MACHINE = "LocalMachine"


class PowerShellStoreQuery(StoreQueryInterface):
    """通过PowerShell查询Windows根证书存储"""

    def __init__(self, timeout: float = 5.0, executable: str = "powershell"):
        """
        初始化查询器

        Args:
            timeout: 单次查询超时时间（秒）
            executable: PowerShell可执行文件
        """
        self.timeout = timeout
        self.executable = executable
        self.logger = logging.getLogger(__name__)

    def count_matching(self, store_location: str, marker: str) -> int:
        """
        统计根证书存储中主题包含标记的证书数量

        Args:
            store_location: CurrentUser 或 LocalMachine
            marker: 主题标记，例如 "mkcert"

        Returns:
            int: 匹配数量

        Raises:
            subprocess.CalledProcessError: PowerShell返回非零退出码
            subprocess.TimeoutExpired: 查询超时
            OSError: 无法启动PowerShell
        """
        subjects = self.list_subjects(store_location)
        count = len([subject for subject in subjects if marker in subject])
        self.logger.debug(f"证书存储 {store_location}\\Root 中找到 {count} 个匹配 '{marker}' 的证书")
        return count

    def list_subjects(self, store_location: str) -> List[str]:
        """
        列出根证书存储中所有证书的主题

        Args:
            store_location: CurrentUser 或 LocalMachine

        Returns:
            List[str]: 证书主题列表
        """
        if store_location not in (CURRENT_USER, LOCAL_MACHINE):
            raise ValueError(f"未知的证书存储位置: {store_location}")

        result = subprocess.run(
            self._build_command(store_location),
            capture_output=True,
            text=True,
            errors='replace',
            timeout=self.timeout,
            check=True
        )

        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def _build_command(self, store_location: str) -> List[str]:
        script = (
            f"Get-ChildItem -Path Cert:\\{store_location}\\Root "
            f"| Select-Object -ExpandProperty Subject"
        )
        return [self.executable, "-NoProfile", "-NonInteractive", "-Command", script]
