"""
服务接口定义
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List
from .models import CheckOutcome


class TargetSourceInterface(ABC):
    """检查目标来源接口"""

    @abstractmethod
    def get_targets(self) -> List[str]:
        """获取目标列表（保持输入顺序）"""
        pass


class CertificateFetcherInterface(ABC):
    """证书获取器接口"""

    @abstractmethod
    def fetch_expiry(self, url: str) -> datetime:
        """获取目标证书的过期时间（UTC）"""
        pass

    @abstractmethod
    def abort_connections(self) -> int:
        """中断所有进行中的连接"""
        pass


class ReporterInterface(ABC):
    """检查结果输出接口"""

    @abstractmethod
    def render(self, outcome: CheckOutcome) -> str:
        """将检查结果渲染为一行文本"""
        pass

    @abstractmethod
    def report(self, outcome: CheckOutcome):
        """输出检查结果"""
        pass


class NotificationServiceInterface(ABC):
    """通知服务接口"""

    @abstractmethod
    def send_expiry_notification(self, outcomes: List[CheckOutcome]) -> bool:
        """发送证书过期通知"""
        pass

    @abstractmethod
    def format_notification_content(self, outcomes: List[CheckOutcome]) -> str:
        """格式化通知内容"""
        pass


class LoggerServiceInterface(ABC):
    """日志服务接口"""

    @abstractmethod
    def log_check_start(self, target_count: int):
        """记录检查开始"""
        pass

    @abstractmethod
    def log_outcome(self, outcome: CheckOutcome):
        """记录单个目标的检查结果"""
        pass

    @abstractmethod
    def log_error(self, target: str, error: Exception):
        """记录错误信息"""
        pass
