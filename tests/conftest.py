"""
测试公共夹具
"""
import logging
import threading
import time
from datetime import datetime, timezone, timedelta

import pytest

from cert_expiry_monitor.interfaces import CertificateFetcherInterface
from cert_expiry_monitor.models import CheckFailure, FailureKind
from cert_expiry_monitor.services.error_handler import CertificateCheckError

FIXED_NOW = datetime(2030, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeFetcher(CertificateFetcherInterface):
    """
    按URL返回预设结果的证书获取器

    results 的值可以是 datetime、CertificateCheckError，或二者组成的列表（按调用次数依次返回）。
    """

    def __init__(self, results, delays=None):
        self.results = results
        self.delays = delays or {}
        self.calls = []
        self.aborted = 0
        self._lock = threading.Lock()

    def fetch_expiry(self, url):
        with self._lock:
            attempt = len([u for u in self.calls if u == url])
            self.calls.append(url)

        delay = self.delays.get(url)
        if delay:
            time.sleep(delay)

        result = self.results[url]
        if isinstance(result, list):
            result = result[min(attempt, len(result) - 1)]
        if isinstance(result, Exception):
            raise result
        return result

    def abort_connections(self):
        self.aborted += 1
        return 0


def check_error(kind, message="boom", **kwargs):
    return CertificateCheckError(CheckFailure(kind=kind, message=message, **kwargs))


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def three_target_fetcher():
    """三个目标，第二个无法连接"""
    return FakeFetcher({
        'https://one.example': FIXED_NOW + timedelta(days=90),
        'https://two.example': check_error(FailureKind.CONNECT_FAILED, "unable to connect to two.example:443"),
        'https://three.example': FIXED_NOW + timedelta(hours=12),
    })


@pytest.fixture(autouse=True)
def reset_package_logger():
    """避免测试之间共享绑定到已关闭流的日志处理器"""
    yield
    logger = logging.getLogger("cert_expiry_monitor")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
