# ruff: noqa: I001
"""Typer console interface for ``finboard``.

The root callback loads a local ``.env`` (python-dotenv, never overriding the
existing environment) and configures logging before any command runs.
Commands are thin: they read input, call into the pipeline modules and print
results. Domain errors are reported as ``Error: ...`` on stderr with exit
status 1.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import fields
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .aggregation import (
    cashflow_by_month,
    closing_balance,
    profit_summary,
    reconcile_breakdown,
    stage_totals,
)
from .classification import (
    ADMIN_ROLE,
    CLASSIFICATION_TAGS,
    REFERENCE_CLASSIFICATIONS,
    ClassificationRegistry,
)
from .config import Settings
from .csv_io import read_csv_file
from .errors import ClassificationPermissionError, FinboardError
from .file_types import FileType, parse_file_type
from .ingest import IngestService
from .logging_setup import configure_logging
from .models import CanonicalTransaction, ChunkPayload, UploadPayload
from .pipeline import parse_opportunities
from .pl import extract_categories, parse_pl_lines
from .store import ClassificationStore, DatasetStore
from .transport import send_with_fallback
from .values import format_amount, parse_value


# ---- Shared option objects (module level keeps ruff B008 happy) --------------

CSV_PATH_ARG: ArgumentInfo = typer.Argument(
    ...,
    help="Path to a CSV export.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # reported by the command with a readable message
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
FILE_TYPE_OPTION: OptionInfo = typer.Option(
    ..., "--file-type", "-t", help="Dataset type, e.g. sgd_transactions or pl_client1."
)
ACTOR_OPTION: OptionInfo = typer.Option("cli", "--actor", help="Recorded as the author.")
ROLE_OPTION: OptionInfo = typer.Option(
    ADMIN_ROLE, "--role", help="Actor role; only 'admin' may edit classifications."
)


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn expected failures into ``Error: ...`` and exit status 1."""

    try:
        yield
    except FileNotFoundError as e:
        typer.echo(f"Error: File not found: {e.filename}", err=True)
        raise typer.Exit(1) from None
    except csv.Error as e:
        typer.echo(f"Error: Failed to parse CSV: {e}", err=True)
        raise typer.Exit(1) from None
    except (FinboardError, ValueError, PermissionError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None


def _settings(database_url: str | None) -> tuple[Settings, str]:
    settings = Settings.from_env()
    url = database_url or settings.database_url
    if not url:
        raise FinboardError("DATABASE_URL is not set; pass --database-url or set it in .env")
    return settings, url


def _registry(database_url: str | None) -> tuple[ClassificationRegistry, ClassificationStore]:
    store = ClassificationStore(database_url=database_url)
    return ClassificationRegistry(store.fetch_active()), store


def _echo_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, sort_keys=True, default=str))


# ---- Typer app ----------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Ingest, classify and report on financial CSV exports.",
)
report_app = typer.Typer(no_args_is_help=True, help="Summaries over stored datasets.")
app.add_typer(report_app, name="report")


@app.command("ingest")
def ingest_cmd(
    csv_path: Annotated[Path, CSV_PATH_ARG],
    file_type: Annotated[str, FILE_TYPE_OPTION],
    *,
    uploaded_by: Annotated[str | None, typer.Option(help="Recorded uploader.")] = None,
    max_bytes: Annotated[
        int | None,
        typer.Option(help="Single-request size limit; larger uploads are chunked."),
    ] = None,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Normalize a CSV and replace the stored dataset for its file type."""

    with _reported_errors():
        settings, url = _settings(database_url)
        ft = parse_file_type(file_type)
        rows = read_csv_file(csv_path)
        registry, _ = _registry(url)
        service = IngestService(
            DatasetStore(database_url=url), classifications=registry, settings=settings
        )

        def _send(payload: UploadPayload | ChunkPayload) -> dict[str, Any] | None:
            if isinstance(payload, UploadPayload):
                return service.upload(payload, uploaded_by).summary()
            res = service.receive_chunk(payload, uploaded_by)
            return res.result.summary() if res.result is not None else None

        responses = send_with_fallback(
            rows, ft.value, _send, max_bytes=max_bytes or settings.max_payload_bytes
        )
        _echo_json(responses[-1])


@app.command("categories")
def categories_cmd(csv_path: Annotated[Path, CSV_PATH_ARG]) -> None:
    """Print the distinct category labels of a P&L export, one per line."""

    with _reported_errors():
        for label in extract_categories(read_csv_file(csv_path)):
            typer.echo(label)


@app.command("classify")
def classify_cmd(
    csv_path: Annotated[Path, CSV_PATH_ARG],
    *,
    actor: str = ACTOR_OPTION,
    role: str = ROLE_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Interactively map a P&L export's unclassified labels to tags."""

    from .classification import partition_labels
    from .term_ui import collect_classifications

    with _reported_errors():
        if role != ADMIN_ROLE:
            raise ClassificationPermissionError(f"role {role!r} may not edit classifications")
        _, url = _settings(database_url)
        registry, store = _registry(url)
        current = registry.active()
        labels = extract_categories(read_csv_file(csv_path))
        unknown = partition_labels(labels, current).unknown
        if not unknown:
            typer.echo("All labels are already classified.")
            return
        typer.echo(f"{len(unknown)} unclassified label(s). Enter a tag, or leave empty to skip.")
        chosen = collect_classifications(
            unknown, list(CLASSIFICATION_TAGS), suggestions=REFERENCE_CLASSIFICATIONS
        )
        if not chosen:
            typer.echo("No changes.")
            return
        merged = {**current.mappings, **chosen}
        nxt = registry.replace(merged, actor_role=role, actor=actor)
        store.replace(nxt)
        typer.echo(f"Saved classification version {nxt.version} ({len(chosen)} new).")


@app.command("seed-classifications")
def seed_classifications_cmd(
    *,
    force: Annotated[bool, typer.Option(help="Replace an existing active map.")] = False,
    actor: str = ACTOR_OPTION,
    role: str = ROLE_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Install the reference label → tag map as a new version."""

    with _reported_errors():
        _, url = _settings(database_url)
        registry, store = _registry(url)
        if registry.active().version > 0 and not force:
            typer.echo(
                "Error: an active classification map exists; pass --force to replace it",
                err=True,
            )
            raise typer.Exit(1)
        nxt = registry.replace(REFERENCE_CLASSIFICATIONS, actor_role=role, actor=actor)
        store.replace(nxt)
        typer.echo(f"Seeded classification version {nxt.version} ({len(nxt)} labels).")


@app.command("status")
def status_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Show which file types currently have a stored dataset."""

    with _reported_errors():
        _, url = _settings(database_url)
        for ft, present in DatasetStore(database_url=url).upload_status().items():
            typer.echo(f"{ft}\t{'yes' if present else 'no'}")


@app.command("remove")
def remove_cmd(
    file_type: Annotated[str, FILE_TYPE_OPTION],
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete the stored dataset for a file type."""

    with _reported_errors():
        _, url = _settings(database_url)
        removed = DatasetStore(database_url=url).delete(file_type)
        typer.echo(f"Removed {removed} dataset(s) for {parse_file_type(file_type).value}.")


def _stored_data(file_type: str, database_url: str | None) -> Any:
    stored = DatasetStore(database_url=database_url).fetch_latest_active(file_type)
    if stored is None:
        raise FinboardError(f"no dataset stored for {parse_file_type(file_type).value}")
    return stored.data


@report_app.command("cashflow")
def report_cashflow_cmd(
    file_type: Annotated[str, typer.Option("--file-type", "-t")] = FileType.SGD_TRANSACTIONS.value,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Monthly inflow/outflow and the closing balance."""

    with _reported_errors():
        _, url = _settings(database_url)
        data = _stored_data(file_type, url)
        txs = [CanonicalTransaction.from_dict(t) for t in data.get("transactions", [])]
        opening = Decimal(data.get("openingBalance", "0"))
        typer.echo(f"opening\t{format_amount(opening)}")
        for month, flow in cashflow_by_month(txs).items():
            typer.echo(
                f"{month}\t+{format_amount(flow.inflow)}\t-{format_amount(flow.outflow)}"
                f"\t{format_amount(flow.net)}"
            )
        typer.echo(f"closing\t{format_amount(closing_balance(txs, opening))}")


@report_app.command("pl")
def report_pl_cmd(
    file_type: Annotated[str, typer.Option("--file-type", "-t")] = FileType.PL_CLIENT1.value,
    month: Annotated[str | None, typer.Option(help="Period column, e.g. 'Jan 2024'.")] = None,
    ebitda_adjustment: Annotated[str, typer.Option(help="Added to EBITDA.")] = "0",
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Revenue, gross profit, EBITDA and net profit."""

    with _reported_errors():
        _, url = _settings(database_url)
        data = _stored_data(file_type, url)
        registry, _ = _registry(url)
        lines = parse_pl_lines(data.get("rows", []))
        summary = profit_summary(
            lines, registry.active(), month=month, ebitda_adjustment=parse_value(ebitda_adjustment)
        )
        for f in fields(summary):
            typer.echo(f"{f.name}\t{format_amount(getattr(summary, f.name))}")


@report_app.command("pipeline")
def report_pipeline_cmd(
    file_type: Annotated[str, typer.Option("--file-type", "-t")] = FileType.PIPELINE_CLIENT3.value,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Deal value and weighted value per stage; flags unreconciled breakdowns."""

    with _reported_errors():
        _, url = _settings(database_url)
        opps = parse_opportunities(_stored_data(file_type, url).get("rows", []))
        for stage, t in stage_totals(opps).items():
            typer.echo(
                f"{stage}\t{t.count}\t{format_amount(t.value)}\t{format_amount(t.weighted_value)}"
            )
        for o in opps:
            if not o.breakdown:
                continue
            rec = reconcile_breakdown(o)
            if not rec.ok:
                typer.echo(
                    f"unreconciled\t{o.name}\t{format_amount(rec.difference)}", err=True
                )


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Load ``.env`` from the working directory and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()
    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


def main() -> None:  # pragma: no cover - console script
    app()


if __name__ == "__main__":  # pragma: no cover
    app()


__all__: list[str] = ["app", "main"]

