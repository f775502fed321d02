#!/usr/bin/env python3
from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from BOARDVOTE.core.config import settings
from BOARDVOTE.db.models import Base
from BOARDVOTE.db.session import build_engine, make_sessionmaker
from BOARDVOTE.elections import ElectionEngine, ElectionError
from BOARDVOTE.schemas.elections import ElectionAudit, ElectionResults

# -----------------------------------------------------------------------------
# Globals / Config
# -----------------------------------------------------------------------------
console = Console()
T = TypeVar("T")


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _run(database_url: Optional[str], fn: Callable[[ElectionEngine], Awaitable[T]]) -> T:
    async def _go() -> T:
        engine = build_engine(database_url or settings.DATABASE_URL)
        try:
            maker = make_sessionmaker(engine)
            async with maker() as session:
                return await fn(ElectionEngine(session))
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_go())
    except ElectionError as e:
        console.print(f"[red]{e.error_code}[/]: {e.message}")
        if e.context:
            console.print_json(data=e.context)
        raise SystemExit(1)


def show_json(obj: Any) -> None:
    if isinstance(obj, (dict, list)):
        console.print_json(data=obj)
    else:
        console.print_json(obj)


def show_results(results: ElectionResults) -> None:
    state = "[green]active[/]" if results.is_active else "[yellow]closed[/]"
    console.print(Panel.fit(f"{results.election_name} ({state})", title=f"election {results.election_id}"))
    for pos in results.positions:
        t = Table(title=f"{pos.order_index + 1}. {pos.position_name}  [{pos.status}, round {pos.current_scrutiny}]")
        t.add_column("candidate")
        t.add_column("votes", justify="right")
        t.add_column("elected")
        for c in pos.candidates:
            mark = f"round {c.elected_in_scrutiny}" if c.is_elected else ""
            t.add_row(c.candidate_name, str(c.vote_count), mark)
        console.print(t)
        console.print(
            f"present: {pos.total_voters}  majority: {pos.majority_threshold}"
            + (f"  decided by: {pos.decided_by}" if pos.decided_by else "")
        )


# -----------------------------------------------------------------------------
# CLI root
# -----------------------------------------------------------------------------
@click.group(help="BOARDVOTE board election engine")
@click.option("--database-url", envvar="DATABASE_URL", default=None, help="Async SQLAlchemy URL")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url


@cli.command("init-db", help="Create all election tables (use alembic for managed databases)")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    async def _go() -> None:
        engine = build_engine(ctx.obj["database_url"] or settings.DATABASE_URL)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        finally:
            await engine.dispose()

    asyncio.run(_go())
    console.print("[green]Tables created[/] ✅")


@cli.command("seed-positions", help="Ensure the position catalog exists (defaults from DEFAULT_POSITIONS)")
@click.argument("names", nargs=-1)
@click.pass_context
def seed_positions(ctx: click.Context, names: tuple[str, ...]) -> None:
    positions = _run(
        ctx.obj["database_url"],
        lambda eng: eng.orchestrator.ensure_positions(list(names) or None),
    )
    t = Table(show_lines=False)
    t.add_column("id", justify="right")
    t.add_column("name")
    for p in positions:
        t.add_row(str(p.id), p.name)
    console.print(t)


@cli.command("results", help="Show live results of an election")
@click.argument("election_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def results(ctx: click.Context, election_id: int, as_json: bool) -> None:
    audit: ElectionAudit = _run(ctx.obj["database_url"], lambda eng: eng.projector.project(election_id))
    if as_json:
        show_json(audit.results.model_dump_json())
    else:
        show_results(audit.results)


@cli.command("audit", help="Print the full audit projection as JSON")
@click.argument("election_id", type=int)
@click.pass_context
def audit(ctx: click.Context, election_id: int) -> None:
    data: ElectionAudit = _run(ctx.obj["database_url"], lambda eng: eng.projector.project(election_id))
    show_json(data.model_dump_json())


@cli.command("verify", help="Check a certificate verification code against current results")
@click.argument("verification_hash")
@click.pass_context
def verify(ctx: click.Context, verification_hash: str) -> None:
    out = _run(ctx.obj["database_url"], lambda eng: eng.verifier.verify(verification_hash))
    color = "green" if out.results_match else "red"
    console.print(f"[{color}]results_match={out.results_match}[/]")
    console.print(Panel.fit(json.dumps(out.model_dump(mode="json"), indent=2), title=out.election_name))


@cli.command("serve", help="Run the HTTP API with uvicorn")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8081, show_default=True, type=int)
@click.option("--reload", is_flag=True)
def serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    uvicorn.run("BOARDVOTE.main:app_factory", factory=True, host=host, port=port, reload=reload)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
