"""
批量证书检查服务
"""
import threading
from concurrent.futures import ThreadPoolExecutor, CancelledError
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, List, Optional
import logging

from ..interfaces import CertificateFetcherInterface
from ..models import CheckOutcome, Severity
from .error_handler import CertificateCheckError, NetworkErrorHandler
from .expiry_calculator import ExpiryCalculator
from .target_normalizer import normalize_target

EXPIRY_DISPLAY_FORMAT = '%Y-%m-%d %H:%M:%S UTC'

_SEVERITY_MESSAGES = {
    Severity.EXPIRED: "The certificate for {url} has expired on {expiry}",
    Severity.CRITICAL_WITHIN_24H: "The certificate for {url} will expire within 24 hours on {expiry}",
    Severity.WARNING_WITHIN_WEEK: "The certificate for {url} will expire within one week on {expiry}",
    Severity.VALID: "The certificate for {url} is valid until {expiry}",
}


def format_outcome_message(outcome: CheckOutcome) -> str:
    """
    生成单个检查结果的可读消息

    握手阶段因证书过期被拒绝的情况与其他失败使用不同的措辞。

    Args:
        outcome: 检查结果

    Returns:
        str: 消息文本
    """
    if outcome.is_success:
        return _SEVERITY_MESSAGES[outcome.severity].format(
            url=outcome.url,
            expiry=outcome.expiry_date.strftime(EXPIRY_DISPLAY_FORMAT)
        )
    if outcome.is_expired_certificate:
        return f"The certificate for {outcome.url}: {outcome.failure.message}"
    return f"Failed to check the certificate for {outcome.url}: {outcome.failure.message}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BatchCertificateChecker:
    """批量证书检查器"""

    def __init__(self, fetcher: CertificateFetcherInterface,
                 calculator: Optional[ExpiryCalculator] = None,
                 max_workers: int = 8,
                 error_handler: Optional[NetworkErrorHandler] = None,
                 clock: Callable[[], datetime] = _utc_now):
        """
        初始化批量证书检查器

        Args:
            fetcher: 证书获取器
            calculator: 过期计算器
            max_workers: 最大并发检查数
            error_handler: 重试处理器，默认不重试
            clock: 返回当前UTC时间的函数
        """
        if max_workers < 1:
            raise ValueError("max_workers 必须大于0")

        self.fetcher = fetcher
        self.calculator = calculator or ExpiryCalculator()
        self.max_workers = max_workers
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self._stop_event = threading.Event()
        self.error_handler = error_handler or NetworkErrorHandler(max_retries=0)
        self.error_handler.stop_event = self._stop_event

        self._futures = []
        # 信号处理器在主线程中调用 cancel()，主线程可能正持有该锁
        self._futures_lock = threading.RLock()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def check_target(self, target: str) -> CheckOutcome:
        """
        检查单个目标：规范化、获取证书、计算严重程度

        Args:
            target: 原始目标字符串

        Returns:
            CheckOutcome: 检查结果
        """
        url = normalize_target(target)

        try:
            expiry_date = self.error_handler.with_retry(self.fetcher.fetch_expiry, url)
        except CertificateCheckError as e:
            self.logger.debug(f"{url} 检查失败: {e.failure.tag}: {e}")
            return CheckOutcome.failed(target, url, e.failure)

        severity = self.calculator.classify(expiry_date, self.clock())
        return CheckOutcome.succeeded(target, url, severity, expiry_date)

    def iter_outcomes(self, targets: Iterable[str]) -> Iterator[CheckOutcome]:
        """
        并发检查所有目标，按输入顺序逐个产出结果

        取消后不再产出结果，被中断的检查结果直接丢弃。

        Args:
            targets: 原始目标序列

        Yields:
            CheckOutcome: 检查结果
        """
        targets = list(targets)
        if not targets:
            return

        workers = min(self.max_workers, len(targets))
        self.logger.info(f"开始检查 {len(targets)} 个目标，并发数: {workers}")

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cert-check")
        try:
            with self._futures_lock:
                for target in targets:
                    if self.cancelled:
                        break
                    self._futures.append(executor.submit(self.check_target, target))
                futures = list(self._futures)

            for future in futures:
                if self.cancelled:
                    break
                try:
                    outcome = future.result()
                except CancelledError:
                    break
                if self.cancelled:
                    break
                yield outcome
        finally:
            if self.cancelled:
                # 取消之后才建立的连接
                self.fetcher.abort_connections()
            executor.shutdown(wait=True, cancel_futures=True)
            with self._futures_lock:
                self._futures = []

    def check_all(self, targets: Iterable[str]) -> List[CheckOutcome]:
        """
        检查所有目标

        Args:
            targets: 原始目标序列

        Returns:
            List[CheckOutcome]: 按输入顺序排列的检查结果
        """
        return list(self.iter_outcomes(targets))

    def cancel(self):
        """取消批量检查：停止重试、取消排队中的检查并中断进行中的连接"""
        if self._stop_event.is_set():
            return

        self.logger.warning("收到取消请求，正在停止证书检查")
        self._stop_event.set()

        with self._futures_lock:
            pending = [future for future in self._futures if future.cancel()]

        aborted = self.fetcher.abort_connections()
        self.logger.info(f"已取消 {len(pending)} 个排队中的检查，中断 {aborted} 个连接")
