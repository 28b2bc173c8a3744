"""AutoDup CLI entry point - assembles all command groups."""
import click

from autodup.config.settings import EngineSettings
from autodup.core.receipt import configure_receipts

from . import __version__
from .config_cmd import config
from .evaluate_cmd import distribute, evaluate
from .history_cmd import history


@click.group()
@click.version_option(version=__version__)
@click.option('--store', 'store_path', help='Config store JSON file (env: AUTODUP_STORE_PATH)')
@click.option('--ledger', 'ledger_path', help='Receipt ledger JSONL file (env: AUTODUP_LEDGER_PATH)')
@click.option('--quiet', is_flag=True, help='Do not print receipts')
@click.pass_context
def cli(ctx: click.Context, store_path: str | None, ledger_path: str | None, quiet: bool):
    """AutoDup: Auto Run session duplication."""
    settings = EngineSettings.from_env()
    if store_path:
        settings.store_path = store_path
    if ledger_path:
        settings.ledger_path = ledger_path
    if quiet:
        settings.emit_receipts = False

    errors = settings.validate()
    if errors:
        raise click.UsageError("; ".join(errors))

    settings.configure_logging()
    configure_receipts(settings.emit_receipts)
    ctx.obj = settings


cli.add_command(config)
cli.add_command(evaluate)
cli.add_command(distribute)
cli.add_command(history)


if __name__ == "__main__":
    cli()
