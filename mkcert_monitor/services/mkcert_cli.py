"""
mkcert命令行封装
"""
import os
import re
import subprocess
from typing import List, Optional
import logging

from ..interfaces import MkcertClientInterface


ROOT_CA_FILENAME = "rootCA.pem"


class MkcertCommandError(Exception):
    """mkcert命令执行失败"""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class MkcertCli(MkcertClientInterface):
    """mkcert命令行客户端实现"""

    def __init__(self, binary: str = "mkcert", timeout: float = 30.0):
        """
        初始化mkcert客户端

        Args:
            binary: mkcert可执行文件
            timeout: 命令超时时间（秒）
        """
        self.binary = binary
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def get_version(self) -> Optional[str]:
        """
        获取mkcert版本

        Returns:
            Optional[str]: 版本号，mkcert不可用时为None
        """
        return self._query("-version")

    def get_ca_root(self) -> Optional[str]:
        """
        获取CAROOT目录

        Returns:
            Optional[str]: 目录路径，mkcert不可用时为None
        """
        return self._query("-CAROOT")

    def get_root_ca_file(self) -> Optional[str]:
        """获取根证书文件路径，文件不存在时返回None"""
        ca_root = self.get_ca_root()
        if not ca_root:
            return None

        path = os.path.join(ca_root, ROOT_CA_FILENAME)
        return path if os.path.isfile(path) else None

    def install_ca(self) -> str:
        """安装本地根证书到系统信任库"""
        return self._run(["-install"])

    def uninstall_ca(self) -> str:
        """从系统信任库移除本地根证书"""
        return self._run(["-uninstall"])

    def create_certificate(self, domains: List[str], output_dir: str, name: Optional[str] = None) -> dict:
        """
        生成证书和私钥

        Args:
            domains: 证书包含的域名
            output_dir: 输出目录，不存在时自动创建
            name: 文件名，默认使用第一个域名

        Returns:
            dict: {'cert_path': ..., 'key_path': ...}

        Raises:
            ValueError: 没有提供域名
            MkcertCommandError: mkcert执行失败
        """
        domains = [domain.strip() for domain in domains if domain and domain.strip()]
        if not domains:
            raise ValueError("至少需要一个域名")

        os.makedirs(output_dir, exist_ok=True)

        filename_base = self.sanitize_filename(name or domains[0])
        cert_path = os.path.join(output_dir, f"{filename_base}.pem")
        key_path = os.path.join(output_dir, f"{filename_base}-key.pem")

        self.logger.info(f"生成证书 {cert_path}，域名: {', '.join(domains)}")
        self._run(["-cert-file", cert_path, "-key-file", key_path] + domains)

        return {'cert_path': cert_path, 'key_path': key_path}

    def delete_certificate_files(self, cert_path: str, key_path: str) -> List[str]:
        """
        删除证书和私钥文件，不存在的文件会被跳过

        Returns:
            List[str]: 实际删除的文件
        """
        removed = []
        for path in (cert_path, key_path):
            if path and os.path.exists(path):
                os.remove(path)
                removed.append(path)

        self.logger.info(f"删除了 {len(removed)} 个证书文件")
        return removed

    @staticmethod
    def sanitize_filename(name: str) -> str:
        """将名称中的非字母数字字符替换为下划线并转为小写"""
        return re.sub(r'[^a-z0-9]', '_', name, flags=re.IGNORECASE).lower()

    def _query(self, flag: str) -> Optional[str]:
        try:
            return self._run([flag]).strip() or None
        except MkcertCommandError as e:
            self.logger.debug(f"mkcert {flag} 执行失败: {str(e)}")
            return None

    def _run(self, args: List[str]) -> str:
        """
        执行mkcert命令

        Raises:
            MkcertCommandError: 启动失败、超时或非零退出码
        """
        command = [self.binary] + args
        self.logger.debug(f"执行命令: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            raise MkcertCommandError(f"mkcert 执行超时（{self.timeout}秒）") from e
        except OSError as e:
            raise MkcertCommandError(f"无法执行 {self.binary}: {str(e)}") from e

        # mkcert 把大部分提示信息写到 stderr
        output = (result.stdout + result.stderr).strip()
        if result.returncode != 0:
            raise MkcertCommandError(
                f"mkcert 返回退出码 {result.returncode}: {output}",
                returncode=result.returncode,
                output=output
            )

        return result.stdout if result.stdout.strip() else result.stderr
