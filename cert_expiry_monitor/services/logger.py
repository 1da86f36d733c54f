"""
日志服务
"""
import os
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from ..interfaces import LoggerServiceInterface
from ..models import CheckOutcome

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LoggerService(LoggerServiceInterface):
    """日志服务实现"""

    def __init__(self, logger_name: str = "cert_expiry_monitor", log_level: Optional[str] = None):
        """
        初始化日志服务

        Args:
            logger_name: 日志器名称
            log_level: 日志级别，如果为None则从环境变量读取
        """
        self.logger_name = logger_name
        self.log_level = log_level or os.getenv('LOG_LEVEL', 'INFO')

        self.logger = logging.getLogger(logger_name)
        self._configure_logger()

        self.execution_stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'start_time': None,
            'end_time': None,
            'total_targets': 0,
            'successful_checks': 0,
            'failed_checks': 0,
            'severity_counts': {},
            'errors': []
        }

    def _configure_logger(self):
        """配置日志器"""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # 避免重复添加处理器
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
            self.logger.addHandler(handler)

        # 防止日志传播到根日志器
        self.logger.propagate = False

    def log_check_start(self, target_count: int):
        """
        记录检查开始

        Args:
            target_count: 要检查的目标数量
        """
        self.execution_stats['start_time'] = datetime.now(timezone.utc)
        self.execution_stats['total_targets'] = target_count

        self.logger.info(f"开始TLS证书检查，共 {target_count} 个目标")
        self.logger.info(f"检查开始时间: {self.execution_stats['start_time'].isoformat()}")

    def log_outcome(self, outcome: CheckOutcome):
        """
        记录单个目标的检查结果

        Args:
            outcome: 检查结果
        """
        counts = self.execution_stats['severity_counts']
        counts[outcome.tag] = counts.get(outcome.tag, 0) + 1

        # 面向用户的逐条输出由 reporter 负责，这里只做统计
        if outcome.is_success:
            self.execution_stats['successful_checks'] += 1
            self.logger.debug(
                f"检查完成 - 目标: {outcome.url}, 级别: {outcome.tag}, "
                f"过期时间: {outcome.expiry_date.isoformat()}"
            )
            return

        self.execution_stats['failed_checks'] += 1
        self.execution_stats['errors'].append({
            'target': outcome.target,
            'error_type': outcome.failure.tag,
            'error_message': outcome.failure.message,
            'is_retryable': outcome.failure.kind.retryable,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })
        self.logger.debug(f"检查失败 - 目标: {outcome.url}, 类型: {outcome.tag}, 错误: {outcome.failure.message}")

    def log_error(self, target: str, error: Exception):
        """
        记录错误信息

        Args:
            target: 目标
            error: 异常对象
        """
        self.execution_stats['errors'].append({
            'target': target,
            'error_type': type(error).__name__,
            'error_message': str(error),
            'is_retryable': False,
            'timestamp': datetime.now(timezone.utc).isoformat()
        })

        self.logger.error(f"{target} 检查时发生错误: {type(error).__name__}: {str(error)}")
        self.logger.debug(f"{target} 错误堆栈跟踪:\n{traceback.format_exc()}")

    def log_check_end(self):
        """记录检查结束"""
        self.execution_stats['end_time'] = datetime.now(timezone.utc)

        self.logger.info("TLS证书检查完成")
        self.logger.info(f"检查结束时间: {self.execution_stats['end_time'].isoformat()}")
        self.logger.info(f"总执行时间: {self._duration():.2f} 秒")
        self.logger.info(
            f"检查统计: 总计 {self.execution_stats['total_targets']} 个目标, "
            f"成功 {self.execution_stats['successful_checks']} 个, "
            f"失败 {self.execution_stats['failed_checks']} 个"
        )

    def _duration(self) -> float:
        start = self.execution_stats['start_time']
        end = self.execution_stats['end_time']
        if start and end:
            return (end - start).total_seconds()
        return 0.0

    def log_notification_sent(self, notification_type: str, outcome_count: int, success: bool):
        """
        记录通知发送状态

        Args:
            notification_type: 通知类型（如 "SNS"）
            outcome_count: 通知中包含的结果数量
            success: 是否发送成功
        """
        if success:
            self.logger.info(f"{notification_type} 通知发送成功，包含 {outcome_count} 个目标")
        else:
            self.logger.error(f"{notification_type} 通知发送失败，包含 {outcome_count} 个目标")

    def log_configuration_info(self, config: Dict[str, Any]):
        """
        记录配置信息

        Args:
            config: 配置信息字典
        """
        safe_config = self._sanitize_config(config)

        self.logger.info("系统配置信息:")
        for key, value in safe_config.items():
            self.logger.info(f"  {key}: {value}")

    def _sanitize_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        清理配置信息中的敏感数据

        Args:
            config: 原始配置

        Returns:
            Dict[str, Any]: 清理后的配置
        """
        safe_config = {}
        for key, value in config.items():
            key_lower = key.lower()

            is_sensitive = (
                key_lower in {'password', 'secret', 'token', 'key', 'sns_topic_arn'} or
                key_lower.endswith(('_key', '_secret', '_password', '_token'))
            )

            if is_sensitive and isinstance(value, str) and value:
                if value.startswith('arn:'):
                    # ARN只显示前缀和主题名
                    parts = value.split(':')
                    if len(parts) >= 6:
                        safe_value = f"{':'.join(parts[:3])}:***:{parts[-1]}"
                    else:
                        safe_value = "***"
                else:
                    safe_value = value[:3] + "***" if len(value) > 3 else "***"
                safe_config[key] = safe_value
            else:
                safe_config[key] = value

        return safe_config

    def get_execution_summary(self) -> Dict[str, Any]:
        """
        获取执行摘要

        Returns:
            Dict[str, Any]: 执行摘要信息
        """
        stats = self.execution_stats
        total = stats['total_targets']

        return {
            'start_time': stats['start_time'].isoformat() if stats['start_time'] else None,
            'end_time': stats['end_time'].isoformat() if stats['end_time'] else None,
            'duration_seconds': self._duration(),
            'total_targets': total,
            'successful_checks': stats['successful_checks'],
            'failed_checks': stats['failed_checks'],
            'success_rate': stats['successful_checks'] / total if total > 0 else 0,
            'severity_counts': dict(stats['severity_counts']),
            'error_count': len(stats['errors']),
            'errors': list(stats['errors'])
        }

    def log_execution_summary(self):
        """记录执行摘要"""
        summary = self.get_execution_summary()

        self.logger.info("=" * 50)
        self.logger.info("执行摘要")
        self.logger.info("=" * 50)
        self.logger.info(f"执行时长: {summary['duration_seconds']:.2f} 秒")
        self.logger.info(f"总目标数: {summary['total_targets']}")
        self.logger.info(f"成功检查: {summary['successful_checks']}")
        self.logger.info(f"失败检查: {summary['failed_checks']}")
        self.logger.info(f"成功率: {summary['success_rate']:.1%}")

        for tag, count in sorted(summary['severity_counts'].items()):
            self.logger.info(f"  {tag}: {count}")

        if summary['errors']:
            self.logger.info(f"错误数量: {summary['error_count']}")
            for i, error in enumerate(summary['errors'][:5], 1):  # 只显示前5个错误
                self.logger.info(f"  错误 {i}: {error['target']} - {error['error_type']}: {error['error_message']}")

            if len(summary['errors']) > 5:
                self.logger.info(f"  ... 还有 {len(summary['errors']) - 5} 个错误")

        self.logger.info("=" * 50)

    def reset_stats(self):
        """重置执行统计"""
        self.execution_stats = self._empty_stats()
