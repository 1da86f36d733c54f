"""
服务实现
"""
