"""
SNS通知服务
"""
import os
import threading
from typing import List, Optional
import logging
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..interfaces import NotificationServiceInterface
from ..models import CheckOutcome, Severity
from .batch_checker import format_outcome_message

# SNS Subject 最长100个字符
MAX_SUBJECT_LENGTH = 100


class SNSNotificationService(NotificationServiceInterface):
    """SNS通知服务实现"""

    def __init__(self, topic_arn: Optional[str] = None, region_name: Optional[str] = None,
                 stop_event: Optional[threading.Event] = None):
        """
        初始化SNS通知服务

        Args:
            topic_arn: SNS主题ARN，如果为None则从环境变量读取
            region_name: AWS区域名称，如果为None则自动检测
            stop_event: 取消信号，设置后不再等待重试
        """
        self.stop_event = stop_event or threading.Event()
        self.topic_arn = topic_arn or os.getenv('SNS_TOPIC_ARN')

        if region_name:
            self.region_name = region_name
        elif self.topic_arn and self.topic_arn.startswith('arn:aws:sns:'):
            # 从SNS ARN中提取区域
            self.region_name = self.topic_arn.split(':')[3]
        else:
            self.region_name = os.getenv('AWS_REGION', 'us-east-1')

        self.logger = logging.getLogger(__name__)
        self.sns_client = boto3.client('sns', region_name=self.region_name)

    @property
    def is_configured(self) -> bool:
        return bool(self.topic_arn)

    def send_expiry_notification(self, outcomes: List[CheckOutcome]) -> bool:
        """
        为需要告警的检查结果发送通知

        Args:
            outcomes: 检查结果列表（非告警结果会被忽略）

        Returns:
            bool: 发送是否成功，没有需要告警的结果时返回True
        """
        alerts = [outcome for outcome in outcomes if outcome.is_alert]
        if not alerts:
            self.logger.info("没有需要告警的证书，跳过通知发送")
            return True

        if not self.is_configured:
            self.logger.warning("SNS主题ARN未配置，跳过通知发送")
            return False

        subject = self._format_subject(alerts)
        message = self.format_notification_content(alerts)

        return self._publish_with_retry(subject, message)

    def _publish_with_retry(self, subject: str, message: str, max_retries: int = 3) -> bool:
        """
        带重试机制的SNS消息发布

        Args:
            subject: 消息主题
            message: 消息内容
            max_retries: 最大重试次数

        Returns:
            bool: 发送是否成功
        """
        for attempt in range(max_retries + 1):
            try:
                response = self.sns_client.publish(
                    TopicArn=self.topic_arn,
                    Subject=subject[:MAX_SUBJECT_LENGTH],
                    Message=message
                )

                self.logger.info(f"SNS通知发送成功，MessageId: {response.get('MessageId')}")
                return True

            except ClientError as e:
                error_code = e.response['Error']['Code']
                error_message = e.response['Error']['Message']

                if self._is_retryable_error(error_code) and attempt < max_retries:
                    wait_time = 2 ** attempt  # 指数退避
                    self.logger.warning(
                        f"SNS发送失败 (尝试 {attempt + 1}/{max_retries + 1}) - {error_code}: {error_message}，"
                        f"{wait_time}秒后重试"
                    )
                    if self.stop_event.wait(wait_time):
                        self.logger.info("检查已取消，停止重试SNS发送")
                        return False
                    continue

                self.logger.error(f"SNS发送失败 - {error_code}: {error_message}")
                return False

            except BotoCoreError as e:
                self.logger.error(f"发送SNS通知时发生错误: {str(e)}")
                return False

        return False

    def _is_retryable_error(self, error_code: str) -> bool:
        """
        判断错误是否可重试

        Args:
            error_code: AWS错误代码

        Returns:
            bool: 是否可重试
        """
        return error_code in {
            'Throttling',
            'ThrottlingException',
            'ServiceUnavailable',
            'InternalError',
            'RequestTimeout'
        }

    def _format_subject(self, outcomes: List[CheckOutcome]) -> str:
        """
        格式化通知主题

        Args:
            outcomes: 需要告警的检查结果

        Returns:
            str: 通知主题
        """
        expired_count = len([o for o in outcomes if o.is_expired_certificate])
        expiring_count = len(outcomes) - expired_count

        if expired_count > 0 and expiring_count > 0:
            return f"TLS证书警报: {expired_count}个已过期, {expiring_count}个即将过期"
        elif expired_count > 0:
            return f"TLS证书警报: {expired_count}个证书已过期"
        else:
            return f"TLS证书提醒: {expiring_count}个证书即将过期"

    def format_notification_content(self, outcomes: List[CheckOutcome]) -> str:
        """
        格式化通知内容

        Args:
            outcomes: 需要告警的检查结果

        Returns:
            str: 格式化的通知内容
        """
        if not outcomes:
            return "所有TLS证书状态正常。"

        sections = [
            ("已过期证书:", [o for o in outcomes if o.is_expired_certificate]),
            ("24小时内过期:", [o for o in outcomes if o.severity is Severity.CRITICAL_WITHIN_24H]),
            ("一周内过期:", [o for o in outcomes if o.severity is Severity.WARNING_WITHIN_WEEK]),
        ]

        lines = [
            "TLS证书过期监控报告",
            "=" * 30,
            f"检查时间: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')}",
            ""
        ]

        for title, section in sections:
            if not section:
                continue
            lines.append(title)
            for outcome in section:
                lines.append(f"• {format_outcome_message(outcome)}")
            lines.append("")

        lines.append("此消息由TLS证书监控系统自动发送。")

        return "\n".join(lines)
