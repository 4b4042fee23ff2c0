"""CLI for the mandate matching engine.

Commands:
- search: Rank candidates for a mandate or ad hoc criteria
- record-signal: Append a learning signal (favorite, reject, meeting...)
- retrain-weights: Fold logged signals back into per-mandate weights
- svi: Compute the Signal Value Index
- pricing: Run the pricing/engagement heuristic for an organisation
- serve: Start the JSON HTTP API
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Protocol

import typer
import uvicorn
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from . import __version__
from .application.feedback import FeedbackAggregator
from .application.payloads import CriteriaPayload, PricingRequest
from .application.search import SearchOrchestrator, resolve_search_criteria
from .config import MatchingConfig
from .config_file import format_validation_error, load_matching_config_file
from .domain.criteria import CriteriaModel
from .domain.pricing import activity_score_from_usage, evaluate_pricing
from .domain.signal_value import compute_svi
from .domain.signals import build_signal
from .exceptions import MatchingError
from .observability import set_log_level
from .protocols import CandidateSource, CriteriaRepository, FileSystem, SignalLog, WeightStore
from .web import WebServices, create_web_app, pricing_payload, search_result_payload


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: MatchingConfig) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    fs: FileSystem
    candidate_source: CandidateSource
    weight_store: WeightStore
    signal_log: SignalLog
    criteria_repository: CriteriaRepository


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: MatchingConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(self, *, config: MatchingConfig | None = None) -> CliDependencies:
        """Return dependencies using the configured builder."""
        return self.deps_builder(config=config or self.config)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the mandate-match entry point.")


class UsagePairError(typer.BadParameter):
    """Raised when a --usage value is not ``metric=quantity``."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Usage must look like metric=quantity (got {value!r}).")


def build_orchestrator(config: MatchingConfig, deps: CliDependencies) -> SearchOrchestrator:
    return SearchOrchestrator(
        candidate_source=deps.candidate_source,
        weight_store=deps.weight_store,
        default_weights=config.default_weights,
        page_size=config.search_page_size,
        prefilter=config.search_prefilter,
    )


def build_aggregator(config: MatchingConfig, deps: CliDependencies) -> FeedbackAggregator:
    return FeedbackAggregator(
        signal_log=deps.signal_log,
        weight_store=deps.weight_store,
        candidate_source=deps.candidate_source,
        criteria_repository=deps.criteria_repository,
        default_weights=config.default_weights,
        learning_rate=config.learning_rate,
    )


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except MatchingError as exc:
        rprint(f"[red]✗ {exc}[/red]")
        raise typer.Exit(code=1) from exc


def _parse_usage(values: list[str] | None) -> dict[str, float]:
    usage: dict[str, float] = {}
    for value in values or []:
        metric, sep, raw = value.partition("=")
        if not sep or not metric.strip():
            raise UsagePairError(value)
        try:
            usage[metric.strip()] = float(raw)
        except ValueError as exc:
            raise UsagePairError(value) from exc
    return usage


def _load_criteria_file(path: Path, fs: FileSystem) -> CriteriaModel:
    if not fs.exists(path):
        raise typer.BadParameter(f"file not found: {path}", param_hint="--criteria")
    try:
        payload = CriteriaPayload.model_validate_json(fs.read_text(path))
    except ValidationError as exc:
        raise typer.BadParameter(format_validation_error(exc), param_hint="--criteria") from exc
    return payload.to_criteria()


def _version_callback(value: bool) -> None:
    if value:
        rprint(f"mandate-match {__version__}")
        raise typer.Exit()


def _results_table(rows: list[dict[str, object]]) -> Table:
    table = Table(title="Ranked candidates")
    table.add_column("#", justify="right")
    table.add_column("Company")
    table.add_column("Country")
    table.add_column("Industry")
    table.add_column("Score", justify="right")
    table.add_column("Explain")
    for position, row in enumerate(rows, start=1):
        explain = row["explain"]
        active = (
            ", ".join(factor for factor, value in explain.items() if value)
            if isinstance(explain, dict)
            else ""
        )
        table.add_row(
            str(position),
            str(row["displayName"] or row["legalName"]),
            str(row["country"]),
            str(row["industry"]),
            f"{row['matchScore']:.4f}",
            active or "-",
        )
    return table


def create_app(
    deps_builder: DependenciesBuilder,
    *,
    config_fs: FileSystem,
    config_loader: Callable[[], MatchingConfig] = MatchingConfig.from_env,
) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder.

    ``config_fs`` reads the optional TOML config file before any other
    dependency is built.
    """
    app = typer.Typer(
        add_completion=False,
        help="Lead-to-mandate matching: search, learning signals and weight recompute",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="TOML config file overriding env values"),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING...)"),
        ] = None,
        version: Annotated[
            bool,
            typer.Option(
                "--version",
                callback=_version_callback,
                is_eager=True,
                help="Show the version and exit",
            ),
        ] = False,
    ) -> None:
        """Initialise CLI context."""
        config = config_loader()
        if config_path is not None:
            with _reported_errors():
                file_config = load_matching_config_file(path=config_path, fs=config_fs)
                config = config.with_file_overrides(file_config)
        try:
            set_log_level(log_level or config.log_level)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
        ctx.obj = CliContext(config=config, deps_builder=deps_builder)

    @app.command()
    def search(
        ctx: typer.Context,
        mandate_id: Annotated[
            str | None,
            typer.Option("--mandate", "-m", help="Mandate id (loads stored weights and criteria)"),
        ] = None,
        query: Annotated[
            str,
            typer.Option("--query", "-q", help="Free-text name filter"),
        ] = "",
        criteria_file: Annotated[
            Path | None,
            typer.Option("--criteria", help="JSON criteria file (overrides catalogued criteria)"),
        ] = None,
        limit: Annotated[
            int | None,
            typer.Option("--limit", "-n", min=1, help="Maximum candidates to fetch"),
        ] = None,
        source: Annotated[
            str | None,
            typer.Option("--source", help="Candidate source override: file or rest"),
        ] = None,
        as_json: Annotated[
            bool,
            typer.Option("--json", help="Print results as JSON"),
        ] = False,
    ) -> None:
        """Rank candidates for a mandate (or ad hoc criteria)."""
        state = _get_context(ctx)
        config = state.config.with_overrides(companies_source=source)
        with _reported_errors():
            deps = state.build_dependencies(config=config)
            explicit = (
                None if criteria_file is None else _load_criteria_file(criteria_file, deps.fs)
            )
            criteria = resolve_search_criteria(
                mandate_id=mandate_id,
                criteria=explicit,
                repository=deps.criteria_repository,
            )
            results = build_orchestrator(config, deps).search(
                mandate_id,
                criteria,
                query,
                limit=limit,
                timeout_seconds=config.search_timeout_seconds,
            )
            rows = [search_result_payload(item) for item in results]

        if as_json:
            typer.echo(json.dumps(rows, ensure_ascii=False, indent=2))
            return
        if not rows:
            rprint("[yellow]No matching candidates[/yellow]")
            return
        Console().print(_results_table(rows))

    @app.command(name="record-signal")
    def record_signal(
        ctx: typer.Context,
        mandate_id: Annotated[str, typer.Argument(help="Mandate id")],
        company_id: Annotated[str, typer.Argument(help="Company id")],
        signal: Annotated[
            str,
            typer.Argument(help="favorite, reject, request_match, reply, meeting or bounce"),
        ],
        weight: Annotated[
            int | None,
            typer.Option("--weight", "-w", help="Override the signal's default weight"),
        ] = None,
    ) -> None:
        """Append a learning signal to the signal log."""
        state = _get_context(ctx)
        with _reported_errors():
            entry = build_signal(
                mandate_id=mandate_id,
                company_id=company_id,
                signal=signal,
                weight=weight,
            )
            state.build_dependencies().signal_log.append(entry)
        rprint(
            f"[green]✓ Recorded {entry.signal}[/green] ({entry.weight:+d}) "
            f"for {entry.company_id} on {entry.mandate_id}"
        )

    @app.command(name="retrain-weights")
    def retrain_weights(
        ctx: typer.Context,
        mandate_id: Annotated[
            str | None,
            typer.Option("--mandate", "-m", help="Only recompute this mandate"),
        ] = None,
        learning_rate: Annotated[
            float | None,
            typer.Option("--learning-rate", min=0.0, max=1.0, help="Override the learning rate"),
        ] = None,
    ) -> None:
        """Recompute per-mandate weights from logged signals."""
        state = _get_context(ctx)
        config = state.config.with_overrides(learning_rate=learning_rate)
        with _reported_errors():
            deps = state.build_dependencies(config=config)
            report = build_aggregator(config, deps).recompute_all(mandate_id)

        rprint(
            f"[green]✓ Recompute complete:[/green] {len(report.updated)} updated, "
            f"{len(report.skipped)} unchanged, {len(report.failed)} failed"
        )
        for updated_id in report.updated:
            rprint(f"  updated: {updated_id}")
        for failed_id, reason in report.failed.items():
            rprint(f"  [red]failed: {failed_id}[/red] ({reason})")
        if report.failed:
            raise typer.Exit(code=1)

    @app.command()
    def svi(
        press_60d: Annotated[
            int,
            typer.Option("--press", min=0, help="Press mentions in the last 60 days"),
        ] = 0,
        rfp_60d: Annotated[
            int,
            typer.Option("--rfp", min=0, help="RFPs seen in the last 60 days"),
        ] = 0,
    ) -> None:
        """Compute the Signal Value Index."""
        rprint(f"SVI: {compute_svi(press_60d, rfp_60d):.2f}")

    @app.command()
    def pricing(
        org_id: Annotated[str, typer.Argument(help="Organisation id")],
        plan: Annotated[
            str,
            typer.Option("--plan", help="free, pro, growth or enterprise"),
        ] = "free",
        usage: Annotated[
            list[str] | None,
            typer.Option("--usage", "-u", help="Usage counter as metric=quantity (repeatable)"),
        ] = None,
        revenue_eur: Annotated[float, typer.Option("--revenue", min=0.0)] = 0.0,
        cost_eur: Annotated[float, typer.Option("--cost", min=0.0)] = 0.0,
        tenure_months: Annotated[float, typer.Option("--tenure", min=0.0)] = 0.0,
        activity_score: Annotated[
            float | None,
            typer.Option(
                "--activity",
                min=0.0,
                help="Engagement index; derived from the usage totals when omitted",
            ),
        ] = None,
    ) -> None:
        """Run the pricing heuristic for one organisation."""
        counters = _parse_usage(usage)
        if activity_score is None:
            activity_score = activity_score_from_usage(sum(counters.values()))
        try:
            request = PricingRequest.model_validate(
                {
                    "org_id": org_id,
                    "plan": plan,
                    "usage": counters,
                    "revenue_eur": revenue_eur,
                    "cost_eur": cost_eur,
                    "tenure_months": tenure_months,
                    "activity_score": activity_score,
                }
            )
        except ValidationError as exc:
            raise typer.BadParameter(format_validation_error(exc)) from exc
        assessment = evaluate_pricing(request.to_inputs())
        typer.echo(json.dumps(pricing_payload(assessment), indent=2))

    @app.command()
    def serve(
        ctx: typer.Context,
        host: Annotated[str | None, typer.Option("--host", help="Bind address")] = None,
        port: Annotated[int | None, typer.Option("--port", min=1, help="Bind port")] = None,
    ) -> None:
        """Serve the JSON HTTP API with uvicorn."""
        state = _get_context(ctx)
        config = state.config
        deps = state.build_dependencies()
        services = WebServices(
            orchestrator=build_orchestrator(config, deps),
            aggregator=build_aggregator(config, deps),
            signal_log=deps.signal_log,
            criteria_repository=deps.criteria_repository,
            search_timeout_seconds=config.search_timeout_seconds,
        )
        bind_host = host or config.web_host
        bind_port = port or config.web_port
        rprint(f"[green]Serving on http://{bind_host}:{bind_port}[/green]")
        uvicorn.run(
            create_web_app(services),
            host=bind_host,
            port=bind_port,
            log_level=config.log_level.lower(),
        )

    _ = (main, search, record_signal, retrain_weights, svi, pricing, serve)

    return app
