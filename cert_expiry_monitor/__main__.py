"""
`python -m cert_expiry_monitor` 入口
"""
from .cli import main

main(prog_name="cert-expiry-monitor")
