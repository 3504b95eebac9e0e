"""
错误处理服务
"""
import subprocess
import threading
import time
from typing import Callable, Any, Optional, Dict
from datetime import datetime, timezone
import logging

from ..models import TrustFailureKind


class RetryCancelledError(Exception):
    """重试过程被外部取消"""


class CommandErrorHandler:
    """外部命令错误处理器"""

    def __init__(self, max_attempts: int = 3, base_delay: float = 1.0,
                 cancel_event: Optional[threading.Event] = None):
        """
        初始化外部命令错误处理器

        Args:
            max_attempts: 最大尝试次数（包括第一次）
            base_delay: 固定的重试间隔（秒）
            cancel_event: 外部取消信号
        """
        if max_attempts < 1:
            raise ValueError("max_attempts 必须大于等于1")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.cancel_event = cancel_event
        self.logger = logging.getLogger(__name__)

        # 可重试的错误类型
        self.retryable_errors = {
            subprocess.TimeoutExpired,
            subprocess.CalledProcessError,
            OSError
        }

        # 不可重试的错误类型
        self.non_retryable_errors = {
            ValueError,
            TypeError
        }

    def with_retry(self, func: Callable, *args, retry_if: Optional[Callable[[Any], bool]] = None, **kwargs) -> Any:
        """
        带重试机制执行函数

        Args:
            func: 要执行的函数
            *args: 函数参数
            retry_if: 判断结果是否需要重试，返回True时重试
            **kwargs: 函数关键字参数

        Returns:
            Any: 函数执行结果；结果一直需要重试时返回最后一次的结果

        Raises:
            RetryCancelledError: 等待重试时收到取消信号
            Exception: 重试次数用尽后的最后一个异常
        """
        for attempt in range(self.max_attempts):
            is_last = attempt == self.max_attempts - 1

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                if not self._is_retryable_error(e):
                    self.logger.error(f"不可重试的错误: {type(e).__name__}: {str(e)}")
                    raise

                if is_last:
                    self.logger.error(f"重试次数用尽，最终失败: {type(e).__name__}: {str(e)}")
                    raise

                self.logger.warning(
                    f"尝试 {attempt + 1}/{self.max_attempts} 失败: {type(e).__name__}: {str(e)}，"
                    f"{self.base_delay:.1f}秒后重试"
                )
            else:
                if retry_if is None or not retry_if(result) or is_last:
                    return result

                self.logger.info(
                    f"尝试 {attempt + 1}/{self.max_attempts} 未得到期望结果，"
                    f"{self.base_delay:.1f}秒后重试"
                )

            self._wait(self.base_delay)

    def _wait(self, delay: float):
        """
        等待重试间隔

        Args:
            delay: 等待时间（秒）

        Raises:
            RetryCancelledError: 收到取消信号
        """
        if self.cancel_event is None:
            time.sleep(delay)
            return

        if self.cancel_event.wait(delay):
            self.logger.warning("重试等待期间收到取消信号")
            raise RetryCancelledError("重试已被取消")

    def _is_retryable_error(self, error: Exception) -> bool:
        """
        判断错误是否可重试

        Args:
            error: 异常对象

        Returns:
            bool: 是否可重试
        """
        error_type = type(error)

        if any(issubclass(error_type, non_retryable) for non_retryable in self.non_retryable_errors):
            return False

        if any(issubclass(error_type, retryable) for retryable in self.retryable_errors):
            return True

        error_message = str(error).lower()
        retryable_messages = [
            'timed out',
            'timeout',
            'temporarily unavailable',
            'access is denied'
        ]

        return any(msg in error_message for msg in retryable_messages)

    def classify_failure(self, error: Exception) -> TrustFailureKind:
        """
        将异常归类为失败类型

        Args:
            error: 异常对象

        Returns:
            TrustFailureKind: 失败类型
        """
        if isinstance(error, RetryCancelledError):
            return TrustFailureKind.CANCELLED
        if isinstance(error, subprocess.TimeoutExpired):
            return TrustFailureKind.TIMEOUT
        return TrustFailureKind.QUERY_FAILED

    def handle_command_error(self, command: str, error: Exception) -> Dict[str, Any]:
        """
        处理外部命令错误

        Args:
            command: 命令描述
            error: 异常对象

        Returns:
            Dict[str, Any]: 错误处理结果
        """
        error_info = {
            'command': command,
            'error_type': type(error).__name__,
            'error_message': self._describe_error(error),
            'is_retryable': self._is_retryable_error(error),
            'failure_kind': self.classify_failure(error).value,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'suggested_action': self._get_suggested_action(error)
        }

        if error_info['is_retryable']:
            self.logger.warning(f"命令 {command} 执行错误（可重试）: {error_info['error_message']}")
        else:
            self.logger.error(f"命令 {command} 执行错误（不可重试）: {error_info['error_message']}")

        return error_info

    def _describe_error(self, error: Exception) -> str:
        if isinstance(error, subprocess.CalledProcessError):
            stderr = error.stderr.strip() if isinstance(error.stderr, str) else ""
            if stderr:
                return f"退出码 {error.returncode}: {stderr}"
            return f"退出码 {error.returncode}"
        return str(error)

    def _get_suggested_action(self, error: Exception) -> str:
        """
        获取错误的建议处理方案

        Args:
            error: 异常对象

        Returns:
            str: 建议的处理方案
        """
        if isinstance(error, RetryCancelledError):
            return "检查已被取消，可稍后重新检查"
        elif isinstance(error, subprocess.TimeoutExpired):
            return "命令执行超时，考虑增加超时时间"
        elif isinstance(error, FileNotFoundError):
            return "找不到命令，检查是否已安装并在PATH中"
        elif isinstance(error, PermissionError):
            return "权限不足，检查文件或证书存储的访问权限"
        elif isinstance(error, subprocess.CalledProcessError):
            return "命令返回非零退出码，检查命令输出"
        else:
            return "检查系统环境和命令配置"

