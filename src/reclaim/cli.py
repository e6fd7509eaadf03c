"""CLI interface for Reclaim."""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path

import click

from reclaim.core.cancel import CancelToken
from reclaim.core.catalog import RuleCatalog, load_catalog
from reclaim.core.engine import ReclaimEngine
from reclaim.core.privileges import is_admin
from reclaim.core.summary import summarize
from reclaim.models.report import ItemReport, Status, Summary
from reclaim.models.rule import Rule, RuleType
from reclaim.settings import Settings
from reclaim.utils import bytes_to_human

_STATUS_STYLE = {
    Status.OK: ("✓", "green"),
    Status.PARTIAL: ("!", "yellow"),
    Status.BLOCKED: ("✗", "yellow"),
    Status.ERROR: ("✗", "red"),
    Status.UNKNOWN: ("?", "red"),
}

# Rule types whose clean is irreversible beyond plain file deletion.
_HIGH_RISK_TYPES = (RuleType.REGISTRY, RuleType.APP_RESIDUE)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _catalog(ctx: click.Context) -> RuleCatalog:
    return load_catalog(ctx.obj.get("rules_path"))


def _select(catalog: RuleCatalog, rule_ids: tuple[str, ...]) -> list[Rule]:
    """Enabled rules, optionally restricted to *rule_ids* (kept in catalog order)."""
    rules = catalog.get_enabled()
    if not rule_ids:
        return rules
    wanted = set(rule_ids)
    for rule_id in wanted - {r.id for r in rules}:
        click.echo(f"  {click.style('?', fg='red')} unknown or disabled rule: {rule_id}", err=True)
    return [r for r in rules if r.id in wanted]


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
@click.option(
    "--rules", "rules_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rule catalog JSON file (defaults to the user catalog, then built-ins)",
)
@click.pass_context
def main(ctx: click.Context, verbose: int, rules_path: Path | None) -> None:
    """Reclaim — rule-driven disk space reclamation."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["rules_path"] = rules_path


# ── list ─────────────────────────────────────────────────────────────────

@main.command("list")
@click.option("--category", "-c", default=None, help="Filter by category")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_cmd(ctx: click.Context, category: str | None, as_json: bool) -> None:
    """List enabled cleanup rules."""
    views = _catalog(ctx).views(is_admin())
    if category:
        views = [v for v in views if v.rule.category == category]

    if as_json:
        data = []
        for view in views:
            entry = view.rule.to_dict()
            entry["blocked"] = view.blocked
            entry["blocked_reason"] = view.blocked_reason
            data.append(entry)
        click.echo(json.dumps(data, indent=2))
        return

    if not views:
        click.echo("No rules available.")
        return

    current = None
    for view in views:
        rule = view.rule
        if rule.category != current:
            current = rule.category
            click.echo(f"\n  {click.style(current, fg='blue', bold=True)}")
        admin_tag = click.style(" [requires admin]", fg="yellow") if view.blocked else ""
        risk_tag = ""
        if rule.risk in ("medium", "high"):
            risk_tag = click.style(f" [{rule.risk} risk]", fg="red" if rule.risk == "high" else "yellow")
        click.echo(f"    {click.style(rule.id, fg='cyan', bold=True):30s}  {rule.title}{admin_tag}{risk_tag}")
        if rule.description:
            click.echo(f"      {rule.description}")
    click.echo()


# ── scan ─────────────────────────────────────────────────────────────────

def _run_scan(engine: ReclaimEngine, rules: list[Rule], admin: bool, quiet: bool) -> list[ItemReport]:
    """Scan in a worker thread so Ctrl+C cancels between rules and files."""
    cancel = CancelToken()
    holder: dict[str, list[ItemReport]] = {}

    def on_progress(rule: Rule) -> None:
        if not quiet:
            click.echo(f"  {click.style('…', fg='bright_black')} {rule.title}", err=True)

    def _worker() -> None:
        holder["results"] = engine.scan(rules, admin, on_progress=on_progress, cancel=cancel)

    worker = threading.Thread(target=_worker, name="ReclaimScan", daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(timeout=0.2)
    except KeyboardInterrupt:
        cancel.cancel()
        click.echo("\nCancelling scan...", err=True)
        worker.join()
    return holder.get("results", [])


def _echo_item(item: ItemReport, verb: str) -> None:
    symbol, color = _STATUS_STYLE.get(item.status, ("·", "bright_black"))
    mark = click.style(symbol, fg=color)
    if item.counts_toward_summary:
        size = click.style(bytes_to_human(item.total_bytes), fg="green", bold=True)
        detail = f"{verb} {size} ({item.file_count:,} items)"
        if item.status is Status.PARTIAL:
            detail += click.style(" [some items failed]", fg="yellow")
    else:
        detail = click.style(item.status.value, fg=color)
    click.echo(f"  {mark} {item.title:35s} — {detail}")
    if item.message:
        click.echo(f"      {click.style(item.message, fg='bright_black')}")


def _echo_summary(summary: Summary, label: str) -> None:
    click.echo(
        f"\n{label}: {click.style(bytes_to_human(summary.total_bytes), fg='green', bold=True)}"
        f" in {summary.total_files:,} items"
    )
    for title, buckets in (("By category", summary.by_category), ("By drive", summary.by_drive)):
        if not buckets:
            continue
        click.echo(f"\n  {title}:")
        for bucket in buckets:
            click.echo(f"    {bucket.key:25s} {bytes_to_human(bucket.bytes):>10s}  {bucket.percent:5.1f}%")
    click.echo()


@main.command()
@click.argument("rule_ids", nargs=-1)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def scan(ctx: click.Context, rule_ids: tuple[str, ...], as_json: bool) -> None:
    """Measure reclaimable space (preview only, never deletes)."""
    rules = _select(_catalog(ctx), rule_ids)
    engine = ReclaimEngine()

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {len(rules)} rules...\n")

    results = _run_scan(engine, rules, is_admin(), quiet=as_json)
    summary = summarize(results)

    if as_json:
        payload = {
            "results": [item.to_dict() for item in results],
            "summary": summary.to_dict(),
            "cancelled": len(results) < len(rules),
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo()
    for item in results:
        _echo_item(item, "found")
    if len(results) < len(rules):
        click.echo(click.style(f"\nScan cancelled: {len(rules) - len(results)} rule(s) not evaluated", fg="yellow"))
    _echo_summary(summary, "Total reclaimable")


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.argument("rule_ids", nargs=-1)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def clean(ctx: click.Context, rule_ids: tuple[str, ...], yes: bool, as_json: bool) -> None:
    """Clean the given rules (default: rules checked by default)."""
    catalog = _catalog(ctx)
    rules = catalog.get_enabled()
    ids = list(rule_ids) if rule_ids else [r.id for r in rules if r.default_checked]

    if not ids:
        if as_json:
            click.echo(json.dumps({"status": "nothing_selected", "items": []}))
        else:
            click.echo("Nothing selected.")
        return

    if not yes and not as_json:
        selected = [r for r in (catalog.get(i) for i in ids) if r is not None]
        click.echo("\nRules to clean:\n")
        for rule in selected:
            click.echo(f"  • {rule.title} ({rule.id})")
        if any(r.rule_type in _HIGH_RISK_TYPES for r in selected):
            click.echo(click.style(
                "\nWarning: registry and leftover-folder cleanup is permanent and may "
                "misidentify portable applications.",
                fg="red",
            ))
        if not click.confirm("\nProceed?", default=False):
            click.echo("Aborted.")
            return

    if not as_json:
        click.echo(f"\n{click.style('🧹', bold=True)} Cleaning...\n")

    report = ReclaimEngine().clean(rules, ids, is_admin())

    if as_json:
        payload = report.to_dict()
        payload["status"] = "cleaned"
        click.echo(json.dumps(payload, indent=2))
        return

    for item in report.items:
        _echo_item(item, "freed")
    _echo_summary(report.summary, "Total freed")

    if any(item.status is Status.ERROR for item in report.items):
        sys.exit(1)


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Read and write settings."""


@config.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Print the value of KEY."""
    value = Settings().get(key)
    if value is None:
        click.echo(f"{key} is not set", err=True)
        sys.exit(1)
    click.echo(value)


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Store VALUE under KEY."""
    Settings().set(key, value)
    click.echo(f"{key} = {value}")


if __name__ == "__main__":
    main()
