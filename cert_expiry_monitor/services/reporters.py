"""
检查结果输出服务
"""
import json
import logging
from typing import Optional, TextIO

import click

from ..interfaces import ReporterInterface
from ..models import CheckOutcome, Severity
from .batch_checker import format_outcome_message

ORANGE = (255, 165, 0)

_SEVERITY_COLORS = {
    Severity.EXPIRED: "red",
    Severity.CRITICAL_WITHIN_24H: ORANGE,
    Severity.WARNING_WITHIN_WEEK: "yellow",
    Severity.VALID: "green",
}

_SEVERITY_LOG_LEVELS = {
    Severity.EXPIRED: logging.ERROR,
    Severity.CRITICAL_WITHIN_24H: logging.WARNING,
    Severity.WARNING_WITHIN_WEEK: logging.WARNING,
    Severity.VALID: logging.INFO,
}


class ConsoleReporter(ReporterInterface):
    """
    终端输出

    成功结果写入标准输出，失败写入标准错误。需要告警的结果中URL加粗显示。
    """

    def __init__(self, color: Optional[bool] = None):
        """
        Args:
            color: 是否输出颜色，None 表示由 click 根据终端自动判断
        """
        self.color = color

    def render(self, outcome: CheckOutcome) -> str:
        if outcome.is_success:
            fg = _SEVERITY_COLORS[outcome.severity]
            highlight = outcome.severity.is_alert
        elif outcome.is_expired_certificate:
            fg = "bright_red"
            highlight = True
        else:
            fg = "magenta"
            highlight = True

        message = format_outcome_message(outcome)
        if not highlight:
            return click.style(message, fg=fg)

        # URL 单独加粗，其余部分保持整行颜色
        head, _, tail = message.partition(outcome.url)
        return (
            click.style(head, fg=fg)
            + click.style(outcome.url, fg=fg, bold=True, bg="white")
            + click.style(tail, fg=fg)
        )

    def report(self, outcome: CheckOutcome):
        click.echo(self.render(outcome), err=not outcome.is_success, color=self.color)


class LogReporter(ReporterInterface):
    """通过日志输出检查结果"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def render(self, outcome: CheckOutcome) -> str:
        return f"[{outcome.tag}] {format_outcome_message(outcome)}"

    def report(self, outcome: CheckOutcome):
        if outcome.is_success:
            level = _SEVERITY_LOG_LEVELS[outcome.severity]
        else:
            level = logging.ERROR
        self.logger.log(level, self.render(outcome))


class JsonReporter(ReporterInterface):
    """每个检查结果输出一行JSON"""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def render(self, outcome: CheckOutcome) -> str:
        data = outcome.to_dict()
        data['message'] = format_outcome_message(outcome)
        return json.dumps(data, ensure_ascii=False)

    def report(self, outcome: CheckOutcome):
        click.echo(self.render(outcome), file=self.stream)


REPORTERS = {
    'console': ConsoleReporter,
    'log': LogReporter,
    'json': JsonReporter,
}
