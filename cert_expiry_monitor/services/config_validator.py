"""
配置验证服务
"""
import os
import re
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, Callable
import logging

SNS_ARN_PATTERN = r'^arn:aws:sns:[a-z0-9-]+:\d{12}:[a-zA-Z0-9_-]+$'
LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}


@dataclass
class MonitorConfig:
    """监控配置"""
    targets_file: str = "urls.txt"
    timeout: float = 10.0
    max_workers: int = 8
    max_retries: int = 2
    retry_base_delay: float = 0.5
    sns_topic_arn: Optional[str] = None
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigValidator:
    """配置验证器"""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        """
        初始化配置验证器

        Args:
            environ: 环境变量字典，默认使用 os.environ
        """
        self.environ = os.environ if environ is None else environ
        self.logger = logging.getLogger(__name__)

        # 数值型环境变量：(字段名, 转换函数, 最小值)
        self.numeric_env_vars = {
            'CHECK_TIMEOUT': ('timeout', float, 0.1),
            'MAX_WORKERS': ('max_workers', int, 1),
            'MAX_RETRIES': ('max_retries', int, 0),
            'RETRY_BASE_DELAY': ('retry_base_delay', float, 0.0),
        }

    def load_config(self) -> MonitorConfig:
        """
        从环境变量加载配置，无效值回退到默认值

        Returns:
            MonitorConfig: 监控配置
        """
        config = MonitorConfig()

        for var_name, (field_name, convert, minimum) in self.numeric_env_vars.items():
            value = self._parse_number(var_name, convert, minimum)
            if value is not None:
                setattr(config, field_name, value)

        targets_file = self.environ.get('TARGETS_FILE')
        if targets_file:
            config.targets_file = targets_file

        config.sns_topic_arn = self.environ.get('SNS_TOPIC_ARN') or None

        log_level = self.environ.get('LOG_LEVEL', '').upper()
        if log_level in LOG_LEVELS:
            config.log_level = log_level
        elif log_level:
            self.logger.warning(f"日志级别无效: {log_level}，使用默认值 {config.log_level}")

        return config

    def _parse_number(self, var_name: str, convert: Callable, minimum: float):
        raw = self.environ.get(var_name)
        if not raw:
            return None

        try:
            value = convert(raw)
        except ValueError:
            self.logger.warning(f"环境变量 {var_name} 格式无效: {raw}，使用默认值")
            return None

        if value < minimum:
            self.logger.warning(f"环境变量 {var_name} 值过小: {raw}，最小为 {minimum}，使用默认值")
            return None

        return value

    def validate_all_configurations(self) -> Dict[str, Any]:
        """
        验证所有配置

        Returns:
            Dict[str, Any]: 验证结果
        """
        validation_result = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'configurations': {}
        }

        numeric_validation = self.validate_numeric_configuration()
        validation_result['configurations']['numeric'] = numeric_validation
        if not numeric_validation['is_valid']:
            validation_result['is_valid'] = False
            validation_result['errors'].extend(numeric_validation['errors'])

        targets_validation = self.validate_targets_configuration()
        validation_result['configurations']['targets'] = targets_validation
        validation_result['warnings'].extend(targets_validation['warnings'])

        sns_validation = self.validate_sns_configuration()
        validation_result['configurations']['sns'] = sns_validation
        if not sns_validation['is_valid']:
            # SNS 是可选功能，配置错误只作为警告
            validation_result['warnings'].extend(sns_validation['errors'])

        return validation_result

    def validate_numeric_configuration(self) -> Dict[str, Any]:
        """
        验证数值型环境变量

        Returns:
            Dict[str, Any]: 验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'values': {}
        }

        for var_name, (field_name, convert, minimum) in self.numeric_env_vars.items():
            raw = self.environ.get(var_name)
            if not raw:
                continue
            try:
                value = convert(raw)
            except ValueError:
                result['is_valid'] = False
                result['errors'].append(f"环境变量 {var_name} 格式无效: {raw}")
                continue
            if value < minimum:
                result['is_valid'] = False
                result['errors'].append(f"环境变量 {var_name} 值过小: {raw}（最小为 {minimum}）")
                continue
            result['values'][field_name] = value

        return result

    def validate_targets_configuration(self) -> Dict[str, Any]:
        """
        验证目标来源配置

        Returns:
            Dict[str, Any]: 目标配置验证结果
        """
        result = {
            'warnings': [],
            'targets_env_count': 0,
            'targets_file': self.environ.get('TARGETS_FILE') or MonitorConfig.targets_file,
            'targets_file_exists': False
        }

        targets = [t.strip() for t in self.environ.get('TARGETS', '').split(',') if t.strip()]
        result['targets_env_count'] = len(targets)
        result['targets_file_exists'] = os.path.isfile(result['targets_file'])

        if not targets and not result['targets_file_exists']:
            result['warnings'].append(
                f"TARGETS 环境变量为空且目标文件 {result['targets_file']} 不存在"
            )

        return result

    def validate_sns_configuration(self) -> Dict[str, Any]:
        """
        验证SNS配置

        Returns:
            Dict[str, Any]: SNS配置验证结果
        """
        result = {
            'is_valid': True,
            'errors': [],
            'topic_arn': None,
            'arn_format_valid': False
        }

        topic_arn = self.environ.get('SNS_TOPIC_ARN')

        if not topic_arn:
            result['is_valid'] = False
            result['errors'].append("SNS_TOPIC_ARN环境变量未设置，不发送通知")
            return result

        result['topic_arn'] = topic_arn

        if re.match(SNS_ARN_PATTERN, topic_arn):
            result['arn_format_valid'] = True
        else:
            result['is_valid'] = False
            result['errors'].append(f"SNS主题ARN格式无效: {topic_arn}")

        return result

    def get_configuration_summary(self) -> str:
        """
        获取配置摘要

        Returns:
            str: 配置摘要文本
        """
        validation_result = self.validate_all_configurations()

        lines = [
            "配置验证摘要",
            "=" * 30
        ]

        if validation_result['is_valid']:
            lines.append("配置验证通过")
        else:
            lines.append("配置验证失败")

        if validation_result['errors']:
            lines.append("\n错误:")
            for error in validation_result['errors']:
                lines.append(f"  • {error}")

        if validation_result['warnings']:
            lines.append("\n警告:")
            for warning in validation_result['warnings']:
                lines.append(f"  • {warning}")

        lines.append("\n生效配置:")
        for key, value in self.load_config().to_dict().items():
            lines.append(f"  {key}: {value}")

        return "\n".join(lines)

