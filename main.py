#!/usr/bin/env python3
"""Blog cross-post automation: main CLI.

Usage:
    python main.py                          Poll GitHub once and cross-post new posts
    python main.py --schedule               Poll on an interval
    python main.py --file posts/hello.md    Cross-post a local Markdown file
    python main.py --seed-catalog seed.yml  Load already published articles
    python main.py --status KEY             Show the record for commit#fileName
    python main.py --dry-run                Skip all platform API calls
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

import aiofiles
import yaml

from config import Config
from connectors import GitHubConnector, WorkItem
from errors import ConfigError, ConnectorError, CrossPostError
from ledger import CatalogEntry, Ledger
from notifier import Notifier, OutboxNotifier, SendGridNotifier
from pipeline import CrossPostWorkflow, RetryPolicy, WorkflowResult
from pipeline.scheduler import PipelineScheduler
from platforms import build_capabilities
from publisher import EnvSecretSource, FileSecretSource, Publisher, SecretCache

logger = logging.getLogger("crosspost")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_secrets(cfg: Config) -> SecretCache:
    source = FileSecretSource(cfg.secrets_file) if cfg.secrets_file else EnvSecretSource()
    return SecretCache(source)


def build_notifier(cfg: Config, secrets: SecretCache) -> Notifier:
    if cfg.notifier == "sendgrid":
        return SendGridNotifier(secrets, from_email=cfg.from_email)
    return OutboxNotifier(cfg.outbox_dir)


def build_workflow(
    cfg: Config,
    secrets: SecretCache,
    notifier: Notifier | None = None,
) -> CrossPostWorkflow:
    return CrossPostWorkflow(
        ledger=Ledger(cfg.ledger_path),
        publisher=Publisher(secrets, dry_run=cfg.dry_run),
        platforms=build_capabilities(cfg),
        notifier=notifier,
        canonical=cfg.canonical,
        blog_base_url=cfg.blog_base_url,
        notify_to=cfg.notification_email,
        execution_url=cfg.execution_url,
        retry_policy=RetryPolicy(
            max_attempts=cfg.retry_attempts,
            base_delay=cfg.retry_base_delay,
        ),
        timeout=cfg.workflow_timeout,
    )


def _summarize(results: list[WorkflowResult]) -> None:
    for result in results:
        if result.duplicate:
            logger.info("%s: already processed", result.key)
        elif result.succeeded:
            links = result.catalog_entry.links if result.catalog_entry else {}
            logger.info("%s: published %s", result.key, ", ".join(f"{k}={v}" for k, v in links.items()))
        else:
            logger.error("%s: failed (%s, execution %s)", result.key, result.error, result.execution_id)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def run_poll(cfg: Config) -> list[WorkflowResult]:
    """Detect new posts and cross-post each of them."""
    secrets = build_secrets(cfg)
    notifier = build_notifier(cfg, secrets)
    workflow = build_workflow(cfg, secrets, notifier)
    connector = GitHubConnector(
        owner=cfg.github_owner,
        repo=cfg.github_repo,
        content_path=cfg.content_path,
        secrets=secrets,
        indicator=cfg.new_content_indicator,
        tolerance_minutes=cfg.commit_time_tolerance_minutes,
        send_status_email=cfg.send_status_email,
    )
    try:
        async with connector:
            items = await connector.poll()
    except ConnectorError:
        logger.exception("Listing new content failed; will retry next poll")
        return []

    try:
        results = await workflow.run_many(items)
    finally:
        await workflow.publisher.close()
        await notifier.close()
    _summarize(results)
    return results


async def run_file(cfg: Config, path: Path, commit: str) -> WorkflowResult:
    """Cross-post a single local Markdown file."""
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        content = await f.read()
    item = WorkItem(
        commit=commit,
        file_name=path.as_posix(),
        content=content,
        send_status_email=cfg.send_status_email,
    )
    secrets = build_secrets(cfg)
    notifier = build_notifier(cfg, secrets)
    workflow = build_workflow(cfg, secrets, notifier)
    try:
        result = await workflow.run(item)
    finally:
        await workflow.publisher.close()
        await notifier.close()
    _summarize([result])
    return result


async def seed_catalog(cfg: Config, path: Path) -> int:
    """Load already published articles from a YAML list.

    Each entry: ``{url, title, links: {dev: ..., medium: ..., hashnode: ...}}``.
    """
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(await f.read()) or []
    entries = [
        CatalogEntry(
            url="/" + str(row["url"]).strip("/"),
            title=str(row.get("title", "")),
            links={k: str(v) for k, v in (row.get("links") or {}).items() if v},
        )
        for row in data
    ]
    return await Ledger(cfg.ledger_path).seed_catalog(entries)


async def show_status(cfg: Config, key: str) -> int:
    record = await Ledger(cfg.ledger_path).get_record(key)
    if record is None:
        print(f"No record for {key}")
        return 1
    print(json.dumps(record.to_item(), indent=2))
    return 0


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _setup_logging(cfg: Config) -> None:
    log_dir = cfg.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_dir / "crosspost.log"),
    ]
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crosspost",
        description="Republish new blog posts to dev.to, Medium and Hashnode",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--schedule", action="store_true",
        help="Poll for new posts on an interval with APScheduler",
    )
    mode.add_argument(
        "--file", type=Path, default=None,
        help="Cross-post a local Markdown file instead of polling GitHub",
    )
    mode.add_argument(
        "--seed-catalog", type=Path, default=None,
        help="Load already published articles from a YAML file",
    )
    mode.add_argument(
        "--status", type=str, default=None,
        help="Print the stored record for a '<commit>#<fileName>' key",
    )
    parser.add_argument(
        "--commit", type=str, default="local",
        help="Commit id to record with --file (defaults to 'local')",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Do not call any platform API; publish calls return a stub",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    cfg = Config.from_env()
    if args.dry_run:
        cfg = dataclasses.replace(cfg, dry_run=True)
    _setup_logging(cfg)

    try:
        cfg.validate()
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    try:
        if args.schedule:
            logger.info("Starting scheduler mode")
            scheduler = PipelineScheduler(
                run_pipeline_fn=lambda: run_poll(cfg),
                interval_minutes=cfg.commit_time_tolerance_minutes,
                log_dir=cfg.log_dir,
            )
            scheduler.run_blocking()
            return 0
        if args.file:
            result = asyncio.run(run_file(cfg, args.file, args.commit))
            return 0 if result.succeeded else 1
        if args.seed_catalog:
            count = asyncio.run(seed_catalog(cfg, args.seed_catalog))
            logger.info("Seeded %d catalog entries", count)
            return 0
        if args.status:
            return asyncio.run(show_status(cfg, args.status))
        results = asyncio.run(run_poll(cfg))
        return 0 if all(r.succeeded for r in results) else 1
    except CrossPostError:
        logger.exception("Cross-post run failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
