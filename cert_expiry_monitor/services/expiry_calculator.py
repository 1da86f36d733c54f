"""
证书过期计算服务
"""
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Dict
from ..models import CheckOutcome, Severity

CRITICAL_WINDOW = timedelta(hours=24)
WARNING_WINDOW = timedelta(days=7)


def _as_utc(value: datetime) -> datetime:
    """无时区信息的时间按UTC处理"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def classify(expiration: datetime, now: datetime,
             critical_window: timedelta = CRITICAL_WINDOW,
             warning_window: timedelta = WARNING_WINDOW) -> Severity:
    """
    根据剩余有效期计算严重程度

    边界值归入更紧急的一侧：恰好剩余24小时为 CRITICAL_WITHIN_24H，
    恰好剩余7天为 WARNING_WITHIN_WEEK。

    Args:
        expiration: 证书过期时间
        now: 当前时间
        critical_window: 严重告警窗口
        warning_window: 警告窗口

    Returns:
        Severity: 严重程度
    """
    expiration = _as_utc(expiration)
    now = _as_utc(now)

    if now > expiration:
        return Severity.EXPIRED

    remaining = expiration - now
    if remaining <= critical_window:
        return Severity.CRITICAL_WITHIN_24H
    if remaining <= warning_window:
        return Severity.WARNING_WITHIN_WEEK
    return Severity.VALID


class ExpiryCalculator:
    """证书过期计算器"""

    def __init__(self, critical_window: timedelta = CRITICAL_WINDOW,
                 warning_window: timedelta = WARNING_WINDOW):
        """
        初始化过期计算器

        Args:
            critical_window: 严重告警窗口，默认24小时
            warning_window: 警告窗口，默认7天
        """
        if critical_window > warning_window:
            raise ValueError("严重告警窗口不能大于警告窗口")
        self.critical_window = critical_window
        self.warning_window = warning_window

    def classify(self, expiration: datetime, now: Optional[datetime] = None) -> Severity:
        """
        计算证书严重程度

        Args:
            expiration: 证书过期时间
            now: 当前时间，默认取当前UTC时间

        Returns:
            Severity: 严重程度
        """
        if now is None:
            now = datetime.now(timezone.utc)
        return classify(expiration, now, self.critical_window, self.warning_window)

    def filter_expired(self, outcomes: List[CheckOutcome]) -> List[CheckOutcome]:
        """
        筛选证书已过期的结果（包括握手时因过期被拒绝的）

        Args:
            outcomes: 检查结果列表

        Returns:
            List[CheckOutcome]: 已过期的结果
        """
        return [outcome for outcome in outcomes if outcome.is_expired_certificate]

    def filter_expiring(self, outcomes: List[CheckOutcome]) -> List[CheckOutcome]:
        """
        筛选即将过期的结果

        Args:
            outcomes: 检查结果列表

        Returns:
            List[CheckOutcome]: 即将过期的结果，按紧急程度排序
        """
        expiring = [
            outcome for outcome in outcomes
            if outcome.is_success and outcome.severity in (
                Severity.CRITICAL_WITHIN_24H, Severity.WARNING_WITHIN_WEEK
            )
        ]
        return sorted(expiring, key=lambda outcome: outcome.severity.urgency)

    def categorize_outcomes(self, outcomes: List[CheckOutcome]) -> Dict[str, list]:
        """
        对检查结果进行分类

        Args:
            outcomes: 检查结果列表

        Returns:
            dict: 分类结果
        """
        return {
            'expired': self.filter_expired(outcomes),
            'expiring_soon': self.filter_expiring(outcomes),
            'healthy': [o for o in outcomes if o.is_success and o.severity is Severity.VALID],
            'failed': [o for o in outcomes if not o.is_success and not o.is_expired_certificate]
        }

    def get_expiry_summary(self, outcomes: List[CheckOutcome]) -> str:
        """
        获取过期状态摘要

        Args:
            outcomes: 检查结果列表

        Returns:
            str: 摘要信息
        """
        categorized = self.categorize_outcomes(outcomes)

        summary_parts = [f"总计: {len(outcomes)} 个目标"]

        if categorized['expired']:
            summary_parts.append(f"已过期: {len(categorized['expired'])} 个")

        if categorized['expiring_soon']:
            summary_parts.append(f"即将过期: {len(categorized['expiring_soon'])} 个")

        if categorized['healthy']:
            summary_parts.append(f"健康: {len(categorized['healthy'])} 个")

        if categorized['failed']:
            summary_parts.append(f"检查失败: {len(categorized['failed'])} 个")

        return ", ".join(summary_parts)
