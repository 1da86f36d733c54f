"""
TLS证书过期监控
"""

__version__ = "1.0.0"
