"""
目标规范化服务
"""

SECURE_SCHEME = "https://"


def normalize_target(raw: str) -> str:
    """
    确保目标带有 https 协议前缀

    已经以 https:// 开头的目标原样返回，因此重复规范化结果不变。
    格式错误的目标在这里不做校验，留给证书获取阶段处理。

    Args:
        raw: 原始目标字符串

    Returns:
        str: 规范化后的URL
    """
    if raw.startswith(SECURE_SCHEME):
        return raw
    return f"{SECURE_SCHEME}{raw}"
