"""
日志服务测试
"""
import pytest
import os
import logging
from unittest.mock import patch
from datetime import timedelta
from io import StringIO

from cert_expiry_monitor.services.logger import LoggerService
from cert_expiry_monitor.models import CheckOutcome, CheckFailure, FailureKind, Severity

from conftest import FIXED_NOW


class TestLoggerService:
    """日志服务测试类"""

    def setup_method(self):
        """测试前准备"""
        self.logger_service = LoggerService(logger_name="test_logger")

        # 用字符串流捕获日志输出
        self.log_stream = StringIO()
        handler = logging.StreamHandler(self.log_stream)
        handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))

        self.logger_service.logger.handlers.clear()
        self.logger_service.logger.addHandler(handler)
        self.logger_service.logger.setLevel(logging.DEBUG)

    def teardown_method(self):
        """测试后清理"""
        self.logger_service.logger.handlers.clear()

    def get_log_output(self) -> str:
        return self.log_stream.getvalue()

    def _success(self, target, severity):
        return CheckOutcome.succeeded(target, f"https://{target}", severity, FIXED_NOW + timedelta(days=1))

    def _failure(self, target, kind, expired=False):
        failure = CheckFailure(kind=kind, message="connection refused", expired_certificate=expired)
        return CheckOutcome.failed(target, f"https://{target}", failure)

    @patch.dict(os.environ, {}, clear=True)
    def test_init_default_config(self):
        service = LoggerService()

        assert service.logger_name == "cert_expiry_monitor"
        assert service.log_level == "INFO"
        assert service.logger.propagate is False
        assert len(service.logger.handlers) == 1

    @patch.dict(os.environ, {'LOG_LEVEL': 'DEBUG'})
    def test_init_with_env_log_level(self):
        service = LoggerService()

        assert service.log_level == "DEBUG"
        assert service.logger.level == logging.DEBUG

    def test_handlers_not_duplicated(self):
        LoggerService(logger_name="dup_logger")
        service = LoggerService(logger_name="dup_logger", log_level="ERROR")

        assert len(service.logger.handlers) == 1
        assert service.logger.level == logging.ERROR
        service.logger.handlers.clear()

    def test_log_check_start(self):
        self.logger_service.log_check_start(3)

        assert "开始TLS证书检查，共 3 个目标" in self.get_log_output()
        assert self.logger_service.execution_stats['total_targets'] == 3
        assert self.logger_service.execution_stats['start_time'] is not None

    def test_log_outcome_counts(self):
        self.logger_service.log_outcome(self._success("one.example", Severity.VALID))
        self.logger_service.log_outcome(self._success("two.example", Severity.CRITICAL_WITHIN_24H))
        self.logger_service.log_outcome(self._failure("three.example", FailureKind.CONNECT_FAILED))
        self.logger_service.log_outcome(self._failure("four.example", FailureKind.HANDSHAKE_FAILED, expired=True))

        stats = self.logger_service.execution_stats
        assert stats['successful_checks'] == 2
        assert stats['failed_checks'] == 2
        assert stats['severity_counts'] == {
            'valid': 1,
            'critical': 1,
            'connect_failed': 1,
            'handshake_failed:certificate_expired': 1,
        }
        assert [e['error_type'] for e in stats['errors']] == [
            'connect_failed', 'handshake_failed:certificate_expired'
        ]
        assert stats['errors'][0]['is_retryable'] is True
        assert stats['errors'][1]['is_retryable'] is False

    def test_log_outcome_only_debug(self):
        self.logger_service.log_outcome(self._failure("down.example", FailureKind.TIMEOUT))

        lines = self.get_log_output().splitlines()
        assert lines
        assert all(line.startswith("DEBUG - ") for line in lines)

    def test_log_error(self):
        try:
            raise RuntimeError("unexpected")
        except RuntimeError as e:
            self.logger_service.log_error("example.com", e)

        log_output = self.get_log_output()
        assert "example.com 检查时发生错误: RuntimeError: unexpected" in log_output
        assert "Traceback" in log_output
        assert self.logger_service.execution_stats['errors'][0]['error_type'] == "RuntimeError"

    def test_log_check_end(self):
        self.logger_service.log_check_start(1)
        self.logger_service.log_outcome(self._success("one.example", Severity.VALID))
        self.logger_service.log_check_end()

        log_output = self.get_log_output()
        assert "TLS证书检查完成" in log_output
        assert "总计 1 个目标, 成功 1 个, 失败 0 个" in log_output
        assert self.logger_service._duration() >= 0

    @pytest.mark.parametrize("success, level", [(True, "INFO"), (False, "ERROR")])
    def test_log_notification_sent(self, success, level):
        self.logger_service.log_notification_sent("SNS", 2, success)

        assert self.get_log_output().startswith(f"{level} - SNS 通知")

    def test_sanitize_config(self):
        config = {
            'sns_topic_arn': 'arn:aws:sns:us-east-1:123456789012:cert-alerts',
            'api_key': 'abcdef123',
            'token': 'ab',
            'max_workers': 8,
            'targets_file': 'urls.txt',
        }

        safe = self.logger_service._sanitize_config(config)

        assert safe['sns_topic_arn'] == 'arn:aws:sns:***:cert-alerts'
        assert safe['api_key'] == 'abc***'
        assert safe['token'] == '***'
        assert safe['max_workers'] == 8
        assert safe['targets_file'] == 'urls.txt'

    def test_log_configuration_info_hides_secrets(self):
        self.logger_service.log_configuration_info({'sns_topic_arn': 'arn:aws:sns:us-east-1:123456789012:alerts'})

        log_output = self.get_log_output()
        assert "123456789012" not in log_output
        assert "alerts" in log_output

    def test_execution_summary(self):
        self.logger_service.log_check_start(2)
        self.logger_service.log_outcome(self._success("one.example", Severity.VALID))
        self.logger_service.log_outcome(self._failure("two.example", FailureKind.NO_CERTIFICATE))
        self.logger_service.log_check_end()

        summary = self.logger_service.get_execution_summary()

        assert summary['total_targets'] == 2
        assert summary['success_rate'] == 0.5
        assert summary['error_count'] == 1
        assert summary['severity_counts'] == {'valid': 1, 'no_certificate': 1}
        assert summary['start_time'] is not None

        self.logger_service.log_execution_summary()
        assert "成功率: 50.0%" in self.get_log_output()

    def test_execution_summary_truncates_errors(self):
        for i in range(7):
            self.logger_service.log_outcome(self._failure(f"host{i}.example", FailureKind.TIMEOUT))

        self.logger_service.log_execution_summary()

        assert "... 还有 2 个错误" in self.get_log_output()

    def test_reset_stats(self):
        self.logger_service.log_check_start(4)
        self.logger_service.reset_stats()

        summary = self.logger_service.get_execution_summary()
        assert summary['total_targets'] == 0
        assert summary['start_time'] is None
        assert summary['success_rate'] == 0
