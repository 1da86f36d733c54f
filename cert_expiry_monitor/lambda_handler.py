"""
AWS Lambda函数入口点
"""
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone

from .interfaces import NotificationServiceInterface, ReporterInterface, TargetSourceInterface
from .services.batch_checker import BatchCertificateChecker
from .services.config_validator import ConfigValidator, MonitorConfig
from .services.error_handler import NetworkErrorHandler
from .services.expiry_calculator import ExpiryCalculator
from .services.logger import LoggerService
from .services.reporters import LogReporter
from .services.sns_notification import SNSNotificationService
from .services.ssl_checker import SSLCertificateChecker
from .services.target_loader import EnvTargetSource, StaticTargetSource
from .models import CheckResult


class CertificateExpiryMonitor:
    """TLS证书过期监控器主类"""

    def __init__(self, config: Optional[MonitorConfig] = None,
                 target_source: Optional[TargetSourceInterface] = None,
                 reporters: Optional[List[ReporterInterface]] = None,
                 notification_service: Optional[NotificationServiceInterface] = None):
        """
        初始化监控器

        Args:
            config: 监控配置，默认从环境变量加载
            target_source: 目标来源，默认读取 TARGETS 环境变量
            reporters: 结果输出列表，默认输出到日志
            notification_service: 通知服务，默认在配置了 SNS_TOPIC_ARN 时启用
        """
        self.config = config or ConfigValidator().load_config()

        self.logger_service = LoggerService(log_level=self.config.log_level)
        self.target_source = target_source or EnvTargetSource()
        self.ssl_checker = SSLCertificateChecker(timeout=self.config.timeout)
        self.expiry_calculator = ExpiryCalculator()
        self.error_handler = NetworkErrorHandler(
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay
        )
        self.batch_checker = BatchCertificateChecker(
            fetcher=self.ssl_checker,
            calculator=self.expiry_calculator,
            max_workers=self.config.max_workers,
            error_handler=self.error_handler
        )

        if reporters is None:
            reporters = [LogReporter(self.logger_service.logger)]
        self.reporters = reporters

        if notification_service is None and self.config.sns_topic_arn:
            notification_service = SNSNotificationService(
                topic_arn=self.config.sns_topic_arn,
                stop_event=self.error_handler.stop_event
            )
        self.notification_service = notification_service

        self._log_configuration()

    def _log_configuration(self):
        """记录系统配置信息"""
        config = self.config.to_dict()
        config['notification_enabled'] = self.notification_service is not None
        config['reporters'] = [type(reporter).__name__ for reporter in self.reporters]
        self.logger_service.log_configuration_info(config)

    def execute(self, targets: Optional[List[str]] = None) -> CheckResult:
        """
        执行TLS证书检查

        Args:
            targets: 要检查的目标，为None时从目标来源读取

        Returns:
            CheckResult: 检查结果
        """
        start_time = datetime.now(timezone.utc)

        if targets is None:
            targets = self.target_source.get_targets()

        if not targets:
            self.logger_service.logger.warning("没有找到要检查的目标")
            return CheckResult(
                total_targets=0,
                successful_checks=0,
                failed_checks=0,
                outcomes=[],
                expiring_outcomes=[],
                expired_outcomes=[],
                errors=["没有找到要检查的目标"],
                execution_time=0.0
            )

        self.logger_service.log_check_start(len(targets))

        outcomes = []
        for outcome in self.batch_checker.iter_outcomes(targets):
            outcomes.append(outcome)
            self.logger_service.log_outcome(outcome)
            for reporter in self.reporters:
                reporter.report(outcome)

        cancelled = self.batch_checker.cancelled
        if cancelled:
            self.logger_service.logger.warning(
                f"检查已取消，完成 {len(outcomes)}/{len(targets)} 个目标"
            )

        self.logger_service.log_check_end()

        categorized = self.expiry_calculator.categorize_outcomes(outcomes)
        self.logger_service.logger.info(self.expiry_calculator.get_expiry_summary(outcomes))

        notification_sent = None
        if not cancelled:
            notification_sent = self._send_notifications(categorized)

        self.logger_service.log_execution_summary()

        return CheckResult(
            total_targets=len(targets),
            successful_checks=len([o for o in outcomes if o.is_success]),
            failed_checks=len([o for o in outcomes if not o.is_success]),
            outcomes=outcomes,
            expiring_outcomes=categorized['expiring_soon'],
            expired_outcomes=categorized['expired'],
            errors=[o.failure.message for o in outcomes if not o.is_success],
            execution_time=(datetime.now(timezone.utc) - start_time).total_seconds(),
            cancelled=cancelled,
            notification_sent=notification_sent,
            error_details=[
                self.error_handler.handle_check_failure(o.url, o.failure)
                for o in outcomes if not o.is_success
            ]
        )

    def _send_notifications(self, categorized: dict) -> Optional[bool]:
        """
        发送通知

        Args:
            categorized: 分类后的检查结果

        Returns:
            Optional[bool]: 通知是否发送成功，未启用通知时返回None
        """
        if self.notification_service is None:
            return None

        alerts = categorized['expired'] + categorized['expiring_soon']
        if not alerts:
            self.logger_service.logger.info("所有证书状态正常，无需发送通知")
            return True

        sent = self.notification_service.send_expiry_notification(alerts)
        self.logger_service.log_notification_sent("SNS", len(alerts), sent)
        return sent

    def cancel(self):
        """取消正在进行的检查"""
        self.batch_checker.cancel()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda函数入口点

    Args:
        event: 触发事件，可通过 "targets" 字段直接指定目标列表
        context: Lambda运行时上下文

    Returns:
        dict: 执行结果和统计信息
    """
    monitor = None
    try:
        target_source = None
        if isinstance(event, dict) and event.get('targets'):
            target_source = StaticTargetSource(event['targets'])

        monitor = CertificateExpiryMonitor(target_source=target_source)
        result = monitor.execute()

        response = {
            'statusCode': 200,
            'body': {
                'message': 'Certificate Expiry Monitor executed successfully',
                'summary': {
                    'total_targets': result.total_targets,
                    'successful_checks': result.successful_checks,
                    'failed_checks': result.failed_checks,
                    'expired_certificates': len(result.expired_outcomes),
                    'expiring_certificates': len(result.expiring_outcomes),
                    'execution_time_seconds': result.execution_time,
                    'success_rate': (
                        result.successful_checks / result.total_targets
                        if result.total_targets > 0 else 0
                    )
                },
                'outcomes': [outcome.to_dict() for outcome in result.outcomes],
                'expired_targets': [outcome.url for outcome in result.expired_outcomes],
                'expiring_targets': [outcome.url for outcome in result.expiring_outcomes],
                'errors': result.errors[:5],  # 只返回前5个错误
                'error_statistics': monitor.error_handler.get_error_statistics(result.error_details),
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
        }

        if result.total_targets == 0:
            response['statusCode'] = 400
            response['body']['message'] = 'Certificate Expiry Monitor found no targets to check'

        return response

    except Exception as e:
        if monitor is not None:
            monitor.logger_service.log_error('lambda_handler', e)
        else:
            LoggerService().log_error('lambda_handler', e)

        return {
            'statusCode': 500,
            'body': {
                'message': 'Certificate Expiry Monitor encountered a critical error',
                'error': str(e),
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
        }
