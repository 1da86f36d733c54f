"""
错误处理服务
"""
import threading
from typing import Callable, Any, Optional, Dict, List
from datetime import datetime, timezone
import logging

from ..models import CheckFailure, FailureKind


class CertificateCheckError(Exception):
    """证书检查失败，携带结构化的失败信息"""

    def __init__(self, failure: CheckFailure):
        super().__init__(failure.message)
        self.failure = failure

    @property
    def kind(self) -> FailureKind:
        return self.failure.kind


class NetworkErrorHandler:
    """网络错误处理器"""

    def __init__(self, max_retries: int = 2, base_delay: float = 0.5,
                 stop_event: Optional[threading.Event] = None):
        """
        初始化网络错误处理器

        Args:
            max_retries: 最大重试次数
            base_delay: 基础延迟时间（秒）
            stop_event: 取消信号，设置后不再重试
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.stop_event = stop_event or threading.Event()
        self.logger = logging.getLogger(__name__)

    def with_retry(self, func: Callable, *args, **kwargs) -> Any:
        """
        带重试机制执行函数

        只有连接失败和超时会重试，其余失败类型是确定性的，直接抛出。

        Args:
            func: 要执行的函数
            *args: 函数参数
            **kwargs: 函数关键字参数

        Returns:
            Any: 函数执行结果

        Raises:
            CertificateCheckError: 不可重试的错误，或重试次数用尽后的最后一个错误
        """
        for attempt in range(self.max_retries + 1):
            try:
                return func(*args, **kwargs)

            except CertificateCheckError as e:
                if not self._is_retryable_error(e):
                    raise

                if attempt == self.max_retries:
                    self.logger.error(f"重试次数用尽，最终失败: {e.kind.value}: {str(e)}")
                    raise

                # 指数退避
                delay = self.base_delay * (2 ** attempt)

                self.logger.warning(
                    f"尝试 {attempt + 1}/{self.max_retries + 1} 失败: {e.kind.value}: {str(e)}，"
                    f"{delay:.1f}秒后重试"
                )

                if self.stop_event.wait(delay):
                    self.logger.info("检查已取消，停止重试")
                    raise

    def _is_retryable_error(self, error: CertificateCheckError) -> bool:
        """
        判断错误是否可重试

        Args:
            error: 证书检查错误

        Returns:
            bool: 是否可重试
        """
        if self.stop_event.is_set():
            return False
        return error.kind.retryable

    def handle_check_failure(self, url: str, failure: CheckFailure) -> Dict[str, Any]:
        """
        处理证书检查失败

        Args:
            url: 目标URL
            failure: 失败信息

        Returns:
            Dict[str, Any]: 错误处理结果
        """
        error_info = {
            'url': url,
            'error_type': failure.tag,
            'error_message': failure.message,
            'is_retryable': failure.kind.retryable,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'suggested_action': self._get_suggested_action(failure)
        }

        if failure.raw_text is not None:
            error_info['raw_text'] = failure.raw_text

        # 失败本身已由 reporter 输出，这里只补充处理建议
        self.logger.debug(f"{url} 检查失败 ({failure.tag})，建议: {error_info['suggested_action']}")

        return error_info

    def _get_suggested_action(self, failure: CheckFailure) -> str:
        """
        获取错误的建议处理方案

        Args:
            failure: 失败信息

        Returns:
            str: 建议的处理方案
        """
        kind = failure.kind

        if kind is FailureKind.TARGET_INVALID:
            return "检查目标格式是否正确（主机名和端口）"
        elif kind is FailureKind.TIMEOUT:
            return "检查网络连接，考虑增加超时时间"
        elif kind is FailureKind.CONNECT_FAILED:
            return "检查域名是否正确，DNS是否可用，目标端口是否开放"
        elif kind is FailureKind.HANDSHAKE_FAILED:
            if failure.expired_certificate:
                return "证书已过期，请立即更新证书"
            return "TLS握手失败，检查证书链、颁发机构和TLS版本兼容性"
        elif kind is FailureKind.NO_CERTIFICATE:
            return "服务器未提供证书，检查服务器TLS配置"
        elif kind is FailureKind.TIMESTAMP_UNPARSEABLE:
            return f"证书过期时间格式无法识别: {failure.raw_text!r}"
        else:
            return "检查网络连接和服务器状态"

    def get_error_statistics(self, error_list: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        获取错误统计信息

        Args:
            error_list: 错误信息列表

        Returns:
            Dict[str, Any]: 错误统计
        """
        if not error_list:
            return {
                'total_errors': 0,
                'retryable_errors': 0,
                'non_retryable_errors': 0,
                'error_types': {},
                'most_common_error': None,
                'most_common_error_count': 0
            }

        error_types = {}
        retryable_count = 0

        for error_info in error_list:
            error_type = error_info.get('error_type', 'unknown')
            error_types[error_type] = error_types.get(error_type, 0) + 1

            if error_info.get('is_retryable', False):
                retryable_count += 1

        most_common_error = max(error_types.items(), key=lambda x: x[1])

        return {
            'total_errors': len(error_list),
            'retryable_errors': retryable_count,
            'non_retryable_errors': len(error_list) - retryable_count,
            'error_types': error_types,
            'most_common_error': most_common_error[0],
            'most_common_error_count': most_common_error[1]
        }
