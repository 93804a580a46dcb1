from __future__ import annotations

import logging
from typing import Optional

import typer
from botocore.exceptions import BotoCoreError

from .core import get_gcs_client, GCS_ENDPOINT
from .download import build_config, mirror
from .utils import read_yaml
from .errors import GcsCpError, ConfigError, setup_logging

app = typer.Typer(
    add_completion=False,
    help=(
        "Copy every object under gs://BUCKET[/PREFIX] into DESTINATION.\n\n"
        "Credentials are taken from the environment (Cloud Storage HMAC keys via "
        "AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY, or a named --profile)."
    ),
)

DEFAULT_CONFIG = "config/config.yaml"

# ---------------- Helpers ----------------
def _load_cfg(config_path: Optional[str]) -> dict:
    """
    Load YAML config if present, otherwise return {}.
    An explicitly requested file that is missing is an error.
    """
    path = config_path or DEFAULT_CONFIG
    try:
        cfg = read_yaml(path)
    except FileNotFoundError as e:
        if config_path:
            raise ConfigError(f"config file not found: {config_path}") from e
        return {}
    except Exception as e:
        raise ConfigError(f"could not read config {path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError(f"config {path} must be a mapping")
    return cfg

def _client_from_cfg(cfg: dict, profile: Optional[str], endpoint_url: Optional[str]):
    """
    Resolve auth/endpoint with priority:
    CLI flags -> ENV (handled inside boto3) -> YAML.
    """
    gcs = (cfg.get("gcs") or {}) if cfg else {}
    try:
        return get_gcs_client(
            aws_profile=profile or gcs.get("profile"),
            aws_access_key_id=gcs.get("access_key_id"),
            aws_secret_access_key=gcs.get("secret_access_key"),
            region_name=gcs.get("region", "auto"),
            endpoint_url=endpoint_url or gcs.get("endpoint_url", GCS_ENDPOINT),
            connect_timeout=gcs.get("connect_timeout", 10),
            read_timeout=gcs.get("read_timeout", 60),
        )
    except BotoCoreError as e:
        raise ConfigError(f"could not create storage client: {e}") from e

# ---------------- COPY ----------------
@app.command()
def cmd_copy(
    source: str = typer.Argument(..., help="Source URI: gs://bucket[/path][/file]"),
    destination: str = typer.Argument(..., help="Local destination directory"),
    multi_thread: bool = typer.Option(False, "--multi-thread", "-m", help="Run command in multi-threading mode"),
    progress: Optional[bool] = typer.Option(None, "--progress/--no-progress", help="Show progress bar"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
    profile: Optional[str] = typer.Option(None, "--profile", help="Credentials profile name"),
    endpoint_url: Optional[str] = typer.Option(None, "--endpoint-url", help=f"Storage endpoint (default {GCS_ENDPOINT})"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level, logfile=log_file)
    log = logging.getLogger("gcs_cp.cli.copy")

    try:
        cfg = _load_cfg(config)
        dcfg = (cfg.get("download") or {}) if cfg else {}
        settings = build_config(
            source,
            destination,
            concurrent=multi_thread or bool(dcfg.get("multi_thread", False)),
            progress=progress if progress is not None else bool(dcfg.get("progress", False)),
        )
        s3 = _client_from_cfg(cfg, profile, endpoint_url)
        res = mirror(s3, settings, report=typer.echo)
    except GcsCpError as e:
        log.debug("Copy failed", exc_info=True)
        typer.echo(f"CommandException[{e.category}]: {e}", err=True)
        raise typer.Exit(code=1)

    log.debug("Mode=%s Workers=%d Dest=%s", "concurrent" if res.concurrent else "sequential", res.workers, destination)
    typer.echo(f"Operation completed over {res.count} objects.")


def main() -> int:
    """Console entry point; every failure, including bad usage, exits with 1."""
    try:
        app()
    except SystemExit as e:
        return 0 if e.code in (0, None) else 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
