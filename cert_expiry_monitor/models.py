"""
数据模型定义
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any


class Severity(Enum):
    """证书过期严重程度（按紧急程度排序）"""
    EXPIRED = "expired"
    CRITICAL_WITHIN_24H = "critical"
    WARNING_WITHIN_WEEK = "warning"
    VALID = "valid"

    @property
    def urgency(self) -> int:
        """紧急程度，0 表示最紧急"""
        return _URGENCY[self]

    @property
    def is_alert(self) -> bool:
        """是否需要告警"""
        return self is not Severity.VALID


_URGENCY = {
    Severity.EXPIRED: 0,
    Severity.CRITICAL_WITHIN_24H: 1,
    Severity.WARNING_WITHIN_WEEK: 2,
    Severity.VALID: 3,
}


class FailureKind(Enum):
    """检查失败类型"""
    TARGET_INVALID = "target_invalid"
    CONNECT_FAILED = "connect_failed"
    HANDSHAKE_FAILED = "handshake_failed"
    NO_CERTIFICATE = "no_certificate"
    TIMESTAMP_UNPARSEABLE = "timestamp_unparseable"
    TIMEOUT = "timeout"

    @property
    def retryable(self) -> bool:
        """是否为可重试的瞬时错误"""
        return self in (FailureKind.CONNECT_FAILED, FailureKind.TIMEOUT)


EXPIRED_CERTIFICATE_TAG = "handshake_failed:certificate_expired"


@dataclass(frozen=True)
class CheckFailure:
    """单个目标的检查失败信息"""
    kind: FailureKind
    message: str
    expired_certificate: bool = False
    raw_text: Optional[str] = None
    verify_code: Optional[int] = None

    @property
    def tag(self) -> str:
        """结构化标签，握手阶段证书已过期的情况单独标记"""
        if self.kind is FailureKind.HANDSHAKE_FAILED and self.expired_certificate:
            return EXPIRED_CERTIFICATE_TAG
        return self.kind.value


@dataclass
class CheckOutcome:
    """
    单个目标的检查结果

    严重程度与失败信息二者必居其一。
    """
    target: str
    url: str
    severity: Optional[Severity] = None
    expiry_date: Optional[datetime] = None
    failure: Optional[CheckFailure] = None

    def __post_init__(self):
        has_result = self.severity is not None and self.expiry_date is not None
        if has_result == (self.failure is not None):
            raise ValueError("CheckOutcome 必须且只能包含严重程度或失败信息之一")
        if self.failure is not None and (self.severity is not None or self.expiry_date is not None):
            raise ValueError("失败的检查结果不能包含严重程度或过期时间")

    @classmethod
    def succeeded(cls, target: str, url: str, severity: Severity, expiry_date: datetime) -> "CheckOutcome":
        return cls(target=target, url=url, severity=severity, expiry_date=expiry_date)

    @classmethod
    def failed(cls, target: str, url: str, failure: CheckFailure) -> "CheckOutcome":
        return cls(target=target, url=url, failure=failure)

    @property
    def is_success(self) -> bool:
        return self.failure is None

    @property
    def is_expired_certificate(self) -> bool:
        """证书已过期（无论是分类得出还是握手时被拒绝）"""
        if self.failure is not None:
            return self.failure.tag == EXPIRED_CERTIFICATE_TAG
        return self.severity is Severity.EXPIRED

    @property
    def is_alert(self) -> bool:
        """是否需要告警"""
        if self.failure is not None:
            return self.is_expired_certificate
        return self.severity.is_alert

    @property
    def tag(self) -> str:
        if self.failure is not None:
            return self.failure.tag
        return self.severity.value

    def to_dict(self) -> Dict[str, Any]:
        """转换为可JSON序列化的字典"""
        data = {
            'target': self.target,
            'url': self.url,
            'tag': self.tag,
            'success': self.is_success,
        }
        if self.failure is not None:
            data['failure'] = {
                'kind': self.failure.kind.value,
                'message': self.failure.message,
                'expired_certificate': self.failure.expired_certificate,
                'raw_text': self.failure.raw_text,
                'verify_code': self.failure.verify_code,
            }
        else:
            data['severity'] = self.severity.value
            data['expiry_date'] = self.expiry_date.isoformat()
        return data


@dataclass
class CheckResult:
    """批量检查结果统计"""
    total_targets: int
    successful_checks: int
    failed_checks: int
    outcomes: List[CheckOutcome]
    expiring_outcomes: List[CheckOutcome]
    expired_outcomes: List[CheckOutcome]
    errors: List[str]
    execution_time: float
    cancelled: bool = False
    notification_sent: Optional[bool] = None
    error_details: List[Dict[str, Any]] = field(default_factory=list)
