"""
命令行入口
"""
import signal
import sys
from contextlib import contextmanager
from typing import Optional

import click

from . import __version__
from .lambda_handler import CertificateExpiryMonitor
from .services.config_validator import ConfigValidator
from .services.reporters import REPORTERS
from .services.target_loader import FileTargetSource

EXIT_CANCELLED = 130


@contextmanager
def _cancel_on_signals(monitor: CertificateExpiryMonitor):
    """SIGINT/SIGTERM 时取消检查，退出时恢复原有信号处理器"""
    def handler(signum, frame):
        click.secho(f"Received {signal.Signals(signum).name}, cancelling...", fg="yellow", err=True)
        monitor.cancel()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old_handler in previous.items():
            signal.signal(sig, old_handler)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.argument("targets_file", required=False, type=click.Path(dir_okay=False))
@click.option("--timeout", type=click.FloatRange(min=0.1), help="Connect and handshake timeout in seconds.")
@click.option("--workers", type=click.IntRange(min=1), help="Maximum number of concurrent checks.")
@click.option("--retries", type=click.IntRange(min=0), help="Retries for connection failures and timeouts.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(sorted(REPORTERS)),
    default="console",
    show_default=True,
    help="Output format.",
)
@click.option("--notify/--no-notify", default=True, help="Send an SNS alert when SNS_TOPIC_ARN is set.")
@click.option("--log-level", help="Log level for diagnostics (default WARNING, or LOG_LEVEL).")
@click.option("--show-config", is_flag=True, help="Print the effective configuration and exit.")
def main(
    targets_file: Optional[str],
    timeout: Optional[float],
    workers: Optional[int],
    retries: Optional[int],
    output_format: str,
    notify: bool,
    log_level: Optional[str],
    show_config: bool,
):
    """Check TLS certificate expiry for every target in TARGETS_FILE (default: urls.txt)."""
    validator = ConfigValidator()

    if show_config:
        click.echo(validator.get_configuration_summary())
        return

    config = validator.load_config()
    if targets_file:
        config.targets_file = targets_file
    if timeout is not None:
        config.timeout = timeout
    if workers is not None:
        config.max_workers = workers
    if retries is not None:
        config.max_retries = retries
    if log_level:
        config.log_level = log_level.upper()
    elif "LOG_LEVEL" not in validator.environ:
        config.log_level = "INFO" if output_format == "log" else "WARNING"
    if not notify:
        config.sns_topic_arn = None

    try:
        targets = FileTargetSource(config.targets_file).get_targets()
    except (OSError, UnicodeDecodeError) as e:
        click.secho(f"Unable to read targets from {config.targets_file}: {e}", fg="red", err=True)
        sys.exit(1)

    monitor = CertificateExpiryMonitor(config=config, reporters=[REPORTERS[output_format]()])

    with _cancel_on_signals(monitor):
        result = monitor.execute(targets)

    if result.cancelled:
        sys.exit(EXIT_CANCELLED)


if __name__ == "__main__":
    main()
