"""
SNS通知服务测试
"""
import pytest
import os
import threading
import time
from unittest.mock import patch, MagicMock
from datetime import timedelta

import boto3
from botocore.exceptions import ClientError, EndpointConnectionError
from moto import mock_aws

from cert_expiry_monitor.services.sns_notification import SNSNotificationService
from cert_expiry_monitor.models import CheckOutcome, CheckFailure, FailureKind, Severity

from conftest import FIXED_NOW

TOPIC_ARN = "arn:aws:sns:eu-west-1:123456789012:cert-alerts"


def success(target, severity, offset):
    return CheckOutcome.succeeded(target, f"https://{target}", severity, FIXED_NOW + offset)


def expired_handshake(target):
    failure = CheckFailure(
        kind=FailureKind.HANDSHAKE_FAILED,
        message="certificate verify failed: certificate has expired",
        expired_certificate=True,
        verify_code=10
    )
    return CheckOutcome.failed(target, f"https://{target}", failure)


def connect_failure(target):
    failure = CheckFailure(kind=FailureKind.CONNECT_FAILED, message="unable to connect")
    return CheckOutcome.failed(target, f"https://{target}", failure)


def client_error(code):
    return ClientError({'Error': {'Code': code, 'Message': code}}, 'Publish')


@pytest.fixture
def aws_credentials(monkeypatch):
    """moto 使用的假凭证"""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


class TestSNSNotificationService:
    """SNS通知服务测试类"""

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_init_region_from_arn(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)

        assert service.topic_arn == TOPIC_ARN
        assert service.region_name == 'eu-west-1'
        mock_boto3.client.assert_called_once_with('sns', region_name='eu-west-1')

    @patch.dict(os.environ, {'SNS_TOPIC_ARN': TOPIC_ARN})
    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_init_from_env(self, mock_boto3):
        service = SNSNotificationService()

        assert service.topic_arn == TOPIC_ARN
        assert service.is_configured

    @patch.dict(os.environ, {'AWS_REGION': 'ap-east-1'}, clear=True)
    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_init_unconfigured(self, mock_boto3):
        service = SNSNotificationService()

        assert not service.is_configured
        assert service.region_name == 'ap-east-1'

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_format_notification_content_empty(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)

        assert service.format_notification_content([]) == "所有TLS证书状态正常。"

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_format_notification_content_sections(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)
        outcomes = [
            success("week.example", Severity.WARNING_WITHIN_WEEK, timedelta(days=5)),
            expired_handshake("gone.example"),
            success("day.example", Severity.CRITICAL_WITHIN_24H, timedelta(hours=2)),
        ]

        content = service.format_notification_content(outcomes)

        assert content.index("已过期证书:") < content.index("24小时内过期:") < content.index("一周内过期:")
        assert "• The certificate for https://gone.example: certificate verify failed" in content
        assert "• The certificate for https://day.example will expire within 24 hours" in content
        assert "• The certificate for https://week.example will expire within one week" in content

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_format_subject(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)
        expired = success("old.example", Severity.EXPIRED, -timedelta(days=1))
        expiring = success("soon.example", Severity.WARNING_WITHIN_WEEK, timedelta(days=2))

        assert service._format_subject([expired]) == "TLS证书警报: 1个证书已过期"
        assert service._format_subject([expiring]) == "TLS证书提醒: 1个证书即将过期"
        assert service._format_subject([expired, expiring]) == "TLS证书警报: 1个已过期, 1个即将过期"

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_no_alerts_skips_publish(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)
        outcomes = [
            success("fine.example", Severity.VALID, timedelta(days=90)),
            connect_failure("down.example"),
        ]

        assert service.send_expiry_notification(outcomes) is True
        service.sns_client.publish.assert_not_called()

    @patch.dict(os.environ, {}, clear=True)
    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_unconfigured_does_not_publish(self, mock_boto3):
        service = SNSNotificationService()

        assert service.send_expiry_notification([expired_handshake("gone.example")]) is False
        service.sns_client.publish.assert_not_called()

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_publish_only_alerts(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)
        service.sns_client.publish.return_value = {'MessageId': 'abc'}

        result = service.send_expiry_notification([
            success("fine.example", Severity.VALID, timedelta(days=90)),
            success("soon.example", Severity.CRITICAL_WITHIN_24H, timedelta(hours=1)),
        ])

        assert result is True
        kwargs = service.sns_client.publish.call_args.kwargs
        assert kwargs['TopicArn'] == TOPIC_ARN
        assert "soon.example" in kwargs['Message']
        assert "fine.example" not in kwargs['Message']

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_publish_retries_throttling(self, mock_boto3):
        stop_event = MagicMock()
        stop_event.wait.return_value = False
        service = SNSNotificationService(topic_arn=TOPIC_ARN, stop_event=stop_event)
        service.sns_client.publish.side_effect = [client_error('Throttling'), {'MessageId': 'abc'}]

        assert service._publish_with_retry("subject", "message") is True
        assert service.sns_client.publish.call_count == 2
        stop_event.wait.assert_called_once_with(1)

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_publish_gives_up_after_retries(self, mock_boto3):
        stop_event = MagicMock()
        stop_event.wait.return_value = False
        service = SNSNotificationService(topic_arn=TOPIC_ARN, stop_event=stop_event)
        service.sns_client.publish.side_effect = client_error('ServiceUnavailable')

        assert service._publish_with_retry("subject", "message", max_retries=2) is False
        assert service.sns_client.publish.call_count == 3
        assert [c.args[0] for c in stop_event.wait.call_args_list] == [1, 2]

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_publish_non_retryable_error(self, mock_boto3):
        stop_event = MagicMock()
        service = SNSNotificationService(topic_arn=TOPIC_ARN, stop_event=stop_event)
        service.sns_client.publish.side_effect = client_error('AuthorizationError')

        assert service._publish_with_retry("subject", "message") is False
        service.sns_client.publish.assert_called_once()
        stop_event.wait.assert_not_called()

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_publish_stops_retrying_when_cancelled(self, mock_boto3):
        stop_event = threading.Event()
        stop_event.set()
        service = SNSNotificationService(topic_arn=TOPIC_ARN, stop_event=stop_event)
        service.sns_client.publish.side_effect = client_error('Throttling')

        start = time.monotonic()
        assert service._publish_with_retry("subject", "message") is False

        service.sns_client.publish.assert_called_once()
        assert time.monotonic() - start < 1

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_publish_botocore_error(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)
        service.sns_client.publish.side_effect = EndpointConnectionError(endpoint_url="https://sns")

        assert service._publish_with_retry("subject", "message") is False

    @patch('cert_expiry_monitor.services.sns_notification.boto3')
    def test_subject_truncated(self, mock_boto3):
        service = SNSNotificationService(topic_arn=TOPIC_ARN)
        service.sns_client.publish.return_value = {'MessageId': 'abc'}

        service._publish_with_retry("x" * 150, "message")

        assert len(service.sns_client.publish.call_args.kwargs['Subject']) == 100


class TestSNSNotificationWithMoto:
    """使用 moto 模拟的SNS发布测试"""

    @mock_aws
    def test_send_expiry_notification(self, aws_credentials):
        sns = boto3.client('sns', region_name='us-east-1')
        topic_arn = sns.create_topic(Name='cert-alerts')['TopicArn']

        service = SNSNotificationService(topic_arn=topic_arn)

        assert service.region_name == 'us-east-1'
        assert service.send_expiry_notification([expired_handshake("gone.example")]) is True

    @mock_aws
    def test_send_to_missing_topic_fails(self, aws_credentials):
        service = SNSNotificationService(topic_arn="arn:aws:sns:us-east-1:123456789012:missing")

        assert service.send_expiry_notification([expired_handshake("gone.example")]) is False
