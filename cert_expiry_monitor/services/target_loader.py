"""
检查目标加载服务
"""
import os
from typing import Iterable, List
import logging

from ..interfaces import TargetSourceInterface


def parse_target_lines(lines: Iterable[str]) -> List[str]:
    """
    解析按行给出的目标列表，忽略空行并保持原有顺序

    Args:
        lines: 文本行

    Returns:
        List[str]: 目标列表
    """
    targets = []
    for line in lines:
        target = line.strip()
        if target:
            targets.append(target)
    return targets


class FileTargetSource(TargetSourceInterface):
    """从文件读取目标，每行一个"""

    def __init__(self, path: str):
        self.path = path
        self.logger = logging.getLogger(__name__)

    def get_targets(self) -> List[str]:
        """
        读取目标文件

        Returns:
            List[str]: 目标列表

        Raises:
            OSError: 文件不存在或无法读取
        """
        with open(self.path, 'r', encoding='utf-8') as f:
            targets = parse_target_lines(f)

        self.logger.info(f"从 {self.path} 加载了 {len(targets)} 个目标")
        return targets


class EnvTargetSource(TargetSourceInterface):
    """从环境变量读取目标（逗号分隔）"""

    def __init__(self, env_var_name: str = "TARGETS"):
        """
        初始化环境变量目标来源

        Args:
            env_var_name: 环境变量名称，默认为"TARGETS"
        """
        self.env_var_name = env_var_name
        self.logger = logging.getLogger(__name__)

    def get_targets(self) -> List[str]:
        """
        从环境变量获取目标列表

        Returns:
            List[str]: 目标列表
        """
        value = os.getenv(self.env_var_name, "")

        if not value.strip():
            self.logger.warning(f"环境变量 {self.env_var_name} 为空")
            return []

        targets = parse_target_lines(value.split(','))
        self.logger.info(f"成功加载 {len(targets)} 个目标")
        return targets


class StaticTargetSource(TargetSourceInterface):
    """固定的目标列表"""

    def __init__(self, targets: Iterable[str]):
        self.targets = parse_target_lines(targets)

    def get_targets(self) -> List[str]:
        return list(self.targets)
