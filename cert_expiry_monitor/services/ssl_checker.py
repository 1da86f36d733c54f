"""
SSL证书获取服务
"""
import ssl
import socket
import threading
from datetime import datetime, timezone
from typing import Optional, Tuple
from urllib.parse import urlsplit
import logging

from ..interfaces import CertificateFetcherInterface
from ..models import CheckFailure, FailureKind
from .error_handler import CertificateCheckError

DEFAULT_PORTS = {
    'https': 443,
}

# OpenSSL X509_V_ERR_CERT_HAS_EXPIRED
X509_V_ERR_CERT_HAS_EXPIRED = 10

EXPIRY_DATE_FORMAT = '%b %d %H:%M:%S %Y'
GMT_SUFFIX = ' GMT'


def parse_expiry_timestamp(text: Optional[str]) -> datetime:
    """
    解析证书 notAfter 字段

    格式固定为 'Jan  2 15:04:05 2030 GMT'，结尾的 GMT 可有可无，
    一律按 UTC 处理。

    Args:
        text: notAfter 字段原始文本

    Returns:
        datetime: UTC过期时间

    Raises:
        CertificateCheckError: 时间格式无法识别
    """
    if not isinstance(text, str):
        raise CertificateCheckError(CheckFailure(
            kind=FailureKind.TIMESTAMP_UNPARSEABLE,
            message="certificate has no notAfter field",
            raw_text=None if text is None else repr(text)
        ))

    stripped = text.strip()
    if stripped.endswith(GMT_SUFFIX):
        stripped = stripped[:-len(GMT_SUFFIX)]

    try:
        expiry_date = datetime.strptime(stripped, EXPIRY_DATE_FORMAT)
    except ValueError as e:
        raise CertificateCheckError(CheckFailure(
            kind=FailureKind.TIMESTAMP_UNPARSEABLE,
            message=f"failed to parse certificate expiry date {text!r}: {e}",
            raw_text=text
        )) from e

    return expiry_date.replace(tzinfo=timezone.utc)


class SSLCertificateChecker(CertificateFetcherInterface):
    """SSL证书获取器实现"""

    def __init__(self, timeout: float = 10):
        """
        初始化SSL证书获取器

        Args:
            timeout: 连接和握手的超时时间（秒）
        """
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._active_sockets = set()
        self._lock = threading.RLock()

    def fetch_expiry(self, url: str) -> datetime:
        """
        获取目标证书的过期时间

        Args:
            url: 规范化后的URL

        Returns:
            datetime: UTC过期时间

        Raises:
            CertificateCheckError: 任一阶段失败
        """
        host, port = self._parse_target(url)
        cert = self._get_ssl_certificate(host, port)

        expiry_date = parse_expiry_timestamp(cert.get('notAfter'))
        self.logger.debug(f"{host}:{port} 证书过期时间: {expiry_date.isoformat()}")
        return expiry_date

    def _parse_target(self, url: str) -> Tuple[str, int]:
        """
        解析URL中的主机和端口

        Args:
            url: 规范化后的URL

        Returns:
            Tuple[str, int]: 主机和端口
        """
        try:
            parts = urlsplit(url)
            port = parts.port
        except ValueError as e:
            raise CertificateCheckError(CheckFailure(
                kind=FailureKind.TARGET_INVALID,
                message=f"invalid URL {url!r}: {e}"
            )) from e

        host = parts.hostname
        if not host:
            raise CertificateCheckError(CheckFailure(
                kind=FailureKind.TARGET_INVALID,
                message=f"invalid URL {url!r}: missing host"
            ))

        # getaddrinfo 和 SNI 都会按 IDNA 编码主机名
        try:
            host.encode('idna')
        except UnicodeError as e:
            raise CertificateCheckError(CheckFailure(
                kind=FailureKind.TARGET_INVALID,
                message=f"invalid URL {url!r}: bad host name {host!r}: {e}"
            )) from e

        if port is None:
            port = DEFAULT_PORTS.get(parts.scheme.lower())
            if port is None:
                raise CertificateCheckError(CheckFailure(
                    kind=FailureKind.TARGET_INVALID,
                    message=f"invalid URL {url!r}: no port for scheme {parts.scheme!r}"
                ))

        return host, port

    def _get_ssl_certificate(self, host: str, port: int) -> dict:
        """
        建立连接、完成TLS握手并获取对端证书

        Args:
            host: 主机名
            port: 端口

        Returns:
            dict: getpeercert() 返回的证书信息
        """
        context = ssl.create_default_context()

        try:
            sock = socket.create_connection((host, port), timeout=self.timeout)
        except socket.timeout as e:
            raise CertificateCheckError(CheckFailure(
                kind=FailureKind.TIMEOUT,
                message=f"connection to {host}:{port} timed out after {self.timeout}s"
            )) from e
        except OSError as e:
            raise CertificateCheckError(CheckFailure(
                kind=FailureKind.CONNECT_FAILED,
                message=f"unable to connect to {host}:{port}: {e}"
            )) from e
        except UnicodeError as e:
            raise CertificateCheckError(CheckFailure(
                kind=FailureKind.TARGET_INVALID,
                message=f"bad host name {host!r}: {e}"
            )) from e

        with sock:
            try:
                ssock = context.wrap_socket(sock, server_hostname=host, do_handshake_on_connect=False)
            except UnicodeError as e:
                raise CertificateCheckError(CheckFailure(
                    kind=FailureKind.TARGET_INVALID,
                    message=f"bad host name {host!r}: {e}"
                )) from e
            with ssock:
                self._register(ssock)
                try:
                    ssock.do_handshake()
                    cert = ssock.getpeercert()
                except socket.timeout as e:
                    raise CertificateCheckError(CheckFailure(
                        kind=FailureKind.TIMEOUT,
                        message=f"TLS handshake with {host}:{port} timed out after {self.timeout}s"
                    )) from e
                except ssl.SSLCertVerificationError as e:
                    raise CertificateCheckError(self._verification_failure(host, port, e)) from e
                except OSError as e:
                    raise CertificateCheckError(CheckFailure(
                        kind=FailureKind.HANDSHAKE_FAILED,
                        message=f"TLS handshake with {host}:{port} failed: {e}"
                    )) from e
                finally:
                    self._unregister(ssock)

        if not cert:
            raise CertificateCheckError(CheckFailure(
                kind=FailureKind.NO_CERTIFICATE,
                message=f"no certificate presented by {host}:{port}"
            ))

        return cert

    def _verification_failure(self, host: str, port: int, error: ssl.SSLCertVerificationError) -> CheckFailure:
        """
        根据 OpenSSL 校验码区分证书过期与其他校验失败

        Args:
            host: 主机名
            port: 端口
            error: 证书校验错误

        Returns:
            CheckFailure: 握手失败信息
        """
        verify_code = getattr(error, 'verify_code', None)
        verify_message = getattr(error, 'verify_message', None) or str(error)

        return CheckFailure(
            kind=FailureKind.HANDSHAKE_FAILED,
            message=f"certificate verify failed: {verify_message}",
            expired_certificate=verify_code == X509_V_ERR_CERT_HAS_EXPIRED,
            verify_code=verify_code
        )

    def _register(self, sock: socket.socket):
        with self._lock:
            self._active_sockets.add(sock)

    def _unregister(self, sock: socket.socket):
        with self._lock:
            self._active_sockets.discard(sock)

    def abort_connections(self) -> int:
        """
        关闭所有进行中的连接，使阻塞中的握手立即返回

        Returns:
            int: 被中断的连接数量
        """
        with self._lock:
            sockets = list(self._active_sockets)

        for sock in sockets:
            try:
                socket.socket.shutdown(sock, socket.SHUT_RDWR)
            except OSError as e:
                # 连接可能已经在另一线程中关闭
                self.logger.debug(f"中断连接时出错: {e}")

        if sockets:
            self.logger.info(f"已中断 {len(sockets)} 个进行中的连接")
        return len(sockets)
