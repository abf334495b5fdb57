"""jarseal CLI: sign and verify build archives with jarsigner.

Usage:
    jarseal sign target/app.jar --keystore release.p12 --alias release
    jarseal sign --archive-directory target --tsa http://tsa1 --tsa http://tsa2 --max-tries 3
    jarseal verify target/app.jar --error-when-not-signed
    jarseal --config jarseal.json sign --thread-count 4
"""

import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from .config import build_config
from .errors import JarsignerError
from .models import ProxySettings, SignConfig, VerifyConfig
from .processor import ArchiveProcessor
from .sign import SignProcessor
from .verify import VerifyProcessor

console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging threshold",
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], log_level: str) -> None:
    """jarseal: jarsigner orchestration for build pipelines.

    Retries, TSA failover and parallel signing around the JDK jarsigner.
    """
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------


def _common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.argument("archives", nargs=-1, type=click.Path(path_type=Path)),
        click.option("--verbose", is_flag=True, help="Pass -verbose and log every archive"),
        click.option("--keystore", default=None, help="Keystore location"),
        click.option("--storetype", default=None, help="Keystore type"),
        click.option(
            "--storepass",
            default=None,
            envvar="JARSEAL_STOREPASS",
            help="Keystore password or {env:NAME} reference",
        ),
        click.option("--alias", default=None, help="Key alias"),
        click.option("--provider-name", default=None, help="Provider name"),
        click.option("--provider-class", default=None, help="Provider class"),
        click.option("--provider-arg", default=None, help="Provider argument"),
        click.option("--max-memory", default=None, help="Maximum jarsigner heap, e.g. 512m"),
        click.option("--argument", "arguments", multiple=True, help="Extra jarsigner argument"),
        click.option("--protected", "protected_authentication_path", is_flag=True,
                     help="Keystore has a protected authentication path"),
        click.option("--working-directory", type=click.Path(file_okay=False, path_type=Path),
                     default=None, help="Directory jarsigner runs in"),
        click.option("--skip", is_flag=True, help="Do nothing"),
        click.option("--archive", type=click.Path(path_type=Path), default=None,
                     help="Process only this archive"),
        click.option("--archive-directory", type=click.Path(file_okay=False, path_type=Path),
                     default=None, help="Directory to scan for archives"),
        click.option("--include", "includes", multiple=True, help="Glob of archives to include"),
        click.option("--exclude", "excludes", multiple=True, help="Glob of archives to exclude"),
        click.option("--java-home", type=click.Path(file_okay=False, path_type=Path),
                     default=None, help="JDK providing jarsigner"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _overrides(params: dict[str, Any]) -> dict[str, Any]:
    """Turn click parameters into config overrides; unset ones become None."""
    values: dict[str, Any] = {}
    for key, value in params.items():
        if key == "archives":
            continue
        if isinstance(value, tuple):
            value = list(value) or None
        elif value is False:
            value = None
        values[key] = value
    values["proxy"] = ProxySettings.from_environment()
    return values


def _run(
    processor: ArchiveProcessor, archives: tuple[Path, ...], action: str, done: str
) -> None:
    try:
        count = processor.execute(list(archives))
    except JarsignerError as exc:
        console.print(f"[bold red]{action} failed:[/] {escape(str(exc))}")
        sys.exit(1)

    console.print(
        Panel(
            f"[bold green]{count} archive(s) {done}[/]",
            title="jarseal",
            border_style="green",
        )
    )


# ---------------------------------------------------------------------------
# Sign
# ---------------------------------------------------------------------------


@main.command()
@_common_options
@click.option("--keypass", default=None, envvar="JARSEAL_KEYPASS",
              help="Key password or {env:NAME} reference")
@click.option("--sigfile", default=None, help="Signature file base name")
@click.option("--certchain", type=click.Path(path_type=Path), default=None,
              help="Certificate chain file")
@click.option("--remove-existing-signatures", is_flag=True, help="Unsign archives first")
@click.option("--tsa", multiple=True, help="TSA URL (repeat for failover)")
@click.option("--tsacert", multiple=True, help="TSA certificate alias (repeat for failover)")
@click.option("--tsapolicyid", multiple=True, help="TSA policy OID, one per TSA")
@click.option("--tsadigestalg", default=None, help="TSA digest algorithm")
@click.option("--max-tries", type=int, default=None, help="Attempts per archive (default 1)")
@click.option("--max-retry-delay-seconds", type=int, default=None,
              help="Backoff ceiling in seconds (default 0)")
@click.option("--thread-count", type=int, default=None,
              help="Archives signed in parallel (default 1)")
@click.pass_context
def sign(ctx: click.Context, archives: tuple[Path, ...], **params: Any) -> None:
    """Sign archives with jarsigner."""
    try:
        config = build_config(SignConfig, "sign", ctx.obj["config_path"], _overrides(params))
    except JarsignerError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        sys.exit(1)
    _run(SignProcessor(config), archives, "Sign", "signed")


# ---------------------------------------------------------------------------
# Verify
# ---------------------------------------------------------------------------


@main.command()
@_common_options
@click.option("--certs", is_flag=True, help="Show certificate details")
@click.option("--error-when-not-signed", is_flag=True, help="Fail on unsigned archives")
@click.pass_context
def verify(ctx: click.Context, archives: tuple[Path, ...], **params: Any) -> None:
    """Verify archive signatures with jarsigner."""
    try:
        config = build_config(VerifyConfig, "verify", ctx.obj["config_path"], _overrides(params))
    except JarsignerError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        sys.exit(1)
    _run(VerifyProcessor(config), archives, "Verify", "verified")


if __name__ == "__main__":
    main()
