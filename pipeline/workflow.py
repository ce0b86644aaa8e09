"""Cross-post workflow: the per-article state machine.

One run per work item::

    FetchRecord -> LoadCatalog -> [CanonicalBranch] -> FanOut -> Aggregate -> Decide
                                                                         |-> Succeeded
                                                                         `-> Failed

Branches (one per platform) catch their own failures, so a failing
platform never cancels its siblings; the fan-out is a join barrier.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Awaitable, Callable, Iterable, Sequence

from connectors.base import WorkItem
from errors import CrossPostError, TransformError
from ledger.models import ArticleRecord, CatalogEntry, Status
from ledger.store import Ledger
from notifier.backends import Notifier
from notifier.events import NotificationEvent, failure_event, success_event
from pipeline.result import Err, Ok, Result
from pipeline.retry import RetryPolicy, run_with_retry
from platforms.base import FormattedPost, PlatformCapability, Post, parse_post
from publisher.client import Publisher
from resolver.links import BLOG_PLATFORM, LinkResolver

logger = logging.getLogger(__name__)


class State(str, Enum):
    FETCH_RECORD = "FetchRecord"
    LOAD_CATALOG = "LoadCatalog"
    CANONICAL_BRANCH = "CanonicalBranch"
    FAN_OUT = "FanOut"
    AGGREGATE = "Aggregate"
    DECIDE = "Decide"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass
class BranchOutcome:
    """What one platform branch produced: ``success`` with a URL, or not."""

    platform_id: str
    success: bool
    url: str | None = None
    relative_url: str | None = None
    skipped: bool = False
    error: str | None = None


@dataclass
class WorkflowResult:
    key: str
    state: State
    execution_id: str
    duplicate: bool = False
    branches: list[BranchOutcome] = field(default_factory=list)
    catalog_entry: CatalogEntry | None = None
    error: str | None = None
    path: list[State] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is State.SUCCEEDED


@dataclass
class _Run:
    item: WorkItem
    execution_id: str
    path: list[State] = field(default_factory=list)

    def enter(self, state: State) -> None:
        self.path.append(state)
        logger.debug("[%s] %s -> %s", self.execution_id, self.item.key, state.value)

    def result(self, state: State, **kwargs) -> WorkflowResult:
        self.enter(state)
        return WorkflowResult(
            key=self.item.key,
            state=state,
            execution_id=self.execution_id,
            path=list(self.path),
            **kwargs,
        )


class CrossPostWorkflow:
    """Republish work items to every enabled platform.

    Parameters
    ----------
    ledger:
        Status records and the published-article catalog.
    publisher:
        Executes platform requests (or stubs them in dry-run mode).
    platforms:
        Enabled platforms, processed uniformly.
    notifier:
        Optional outcome notifier; ``notify_to`` must also be set.
    canonical:
        ``"blog"`` or the id of the platform whose URL is canonical.  A
        canonical platform is published first and its URL is passed to
        the others.
    blog_base_url:
        Absolute URL of the source blog; base for canonical links and
        link-rewrite fallbacks.
    retry_policy:
        Backoff applied to transient Transform/Publish failures.
    timeout:
        Wall-clock bound for one run, in seconds.
    """

    def __init__(
        self,
        ledger: Ledger,
        publisher: Publisher,
        platforms: Sequence[PlatformCapability],
        notifier: Notifier | None = None,
        *,
        canonical: str = BLOG_PLATFORM,
        blog_base_url: str = "",
        notify_to: str = "",
        execution_url: str = "",
        retry_policy: RetryPolicy | None = None,
        timeout: float = 300.0,
    ) -> None:
        self.ledger = ledger
        self.publisher = publisher
        self.platforms = list(platforms)
        self.notifier = notifier
        self.canonical = canonical
        self.blog_base_url = blog_base_url.rstrip("/")
        self.notify_to = notify_to
        self.execution_url = execution_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(self, item: WorkItem) -> WorkflowResult:
        """Run one work item to a terminal state, bounded by ``timeout``."""
        run = _Run(item=item, execution_id=uuid.uuid4().hex)
        try:
            return await asyncio.wait_for(self._execute(run), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(
                "[%s] %s timed out after %.0fs", run.execution_id, item.key, self.timeout
            )
            return run.result(State.FAILED, error="Timeout")
        except Exception as exc:
            logger.exception(
                "[%s] %s failed unexpectedly; continuing with others", run.execution_id, item.key
            )
            return run.result(State.FAILED, error=type(exc).__name__)

    async def run_many(self, items: Iterable[WorkItem]) -> list[WorkflowResult]:
        """Run independent work items concurrently; one failing never drops the rest."""
        return list(await asyncio.gather(*(self.run(item) for item in items)))

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _execute(self, run: _Run) -> WorkflowResult:
        item = run.item
        logger.info("[%s] Cross-posting %s", run.execution_id, item.key)

        run.enter(State.FETCH_RECORD)
        begun = await self._step("FetchRecord", lambda: self.ledger.try_begin(item.key))
        if not begun.ok:
            logger.error("[%s] Could not read record for %s: %s", run.execution_id, item.key, begun.error)
            return run.result(State.FAILED, error=begun.kind)
        if begun.value.duplicate:
            logger.info("[%s] %s has already been processed", run.execution_id, item.key)
            return run.result(State.SUCCEEDED, duplicate=True)
        record = begun.value.record

        run.enter(State.LOAD_CATALOG)
        catalog = await self._step("LoadCatalog", self.ledger.list_catalog)
        if not catalog.ok:
            logger.error("[%s] Catalog load failed: %s", run.execution_id, catalog.error)
            return await self._fail(run, [], catalog.kind, notify=False)
        resolver = LinkResolver(catalog.value, self.canonical, self.blog_base_url)

        branches: list[BranchOutcome] = []
        canonical_reference: str | None = None
        remaining = self.platforms
        canonical_platform = self._canonical_platform()
        if canonical_platform is not None:
            run.enter(State.CANONICAL_BRANCH)
            outcome = await self._run_branch(canonical_platform, run, record, resolver, None)
            branches.append(outcome)
            if not outcome.success:
                logger.error(
                    "[%s] Canonical platform %s failed; aborting",
                    run.execution_id, canonical_platform.platform_id,
                )
                return await self._fail(run, branches, outcome.error or "CanonicalFailed")
            canonical_reference = outcome.url
            remaining = [p for p in self.platforms if p is not canonical_platform]

        run.enter(State.FAN_OUT)
        branches.extend(
            await asyncio.gather(
                *(
                    self._run_branch(p, run, record, resolver, canonical_reference)
                    for p in remaining
                )
            )
        )

        run.enter(State.AGGREGATE)
        failed = [b.platform_id for b in branches if not b.success]

        run.enter(State.DECIDE)
        if failed:
            logger.error(
                "[%s] Publishing %s failed on: %s",
                run.execution_id, item.key, ", ".join(failed),
            )
            return await self._fail(run, branches, "PublishError")
        return await self._succeed(run, branches)

    def _canonical_platform(self) -> PlatformCapability | None:
        if self.canonical == BLOG_PLATFORM:
            return None
        for platform in self.platforms:
            if platform.platform_id == self.canonical:
                return platform
        return None

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _step(
        self,
        label: str,
        fn: Callable[[], Awaitable],
        retry: bool = False,
    ) -> Result:
        """Await one step and tag its outcome; only package errors become ``Err``."""
        try:
            if retry:
                value = await run_with_retry(fn, self.retry_policy, label)
            else:
                value = await fn()
        except CrossPostError as exc:
            return Err(exc)
        return Ok(value)

    def _canonical_url_for(
        self, platform_id: str, post: Post, canonical_reference: str | None
    ) -> str | None:
        if platform_id == self.canonical:
            return None
        if canonical_reference:
            return canonical_reference
        if self.blog_base_url:
            return f"{self.blog_base_url}{post.relative_url}"
        return None

    async def _transform(
        self,
        platform: PlatformCapability,
        item: WorkItem,
        resolver: LinkResolver,
        canonical_reference: str | None,
    ) -> FormattedPost:
        post = parse_post(item.content)
        canonical_url = self._canonical_url_for(platform.platform_id, post, canonical_reference)
        return platform.formatter.format(post, resolver, canonical_url)

    async def _publish(self, platform: PlatformCapability, formatted: FormattedPost) -> str:
        response = await self.publisher.send(
            platform.publish_request(formatted.payload),
            platform.auth,
            platform.secret_key,
        )
        return platform.formatter.published_url(response)

    async def _run_branch(
        self,
        platform: PlatformCapability,
        run: _Run,
        record: ArticleRecord,
        resolver: LinkResolver,
        canonical_reference: str | None,
    ) -> BranchOutcome:
        """Skip, or transform then publish, for one platform.  Never raises."""
        pid = platform.platform_id
        key = run.item.key
        try:
            if record.succeeded_on(pid):
                logger.info("[%s] %s already on %s, skipping", run.execution_id, key, pid)
                return BranchOutcome(
                    pid, True, url=record.platforms[pid].url,
                    relative_url=record.url, skipped=True,
                )

            transformed = await self._step(
                f"Transform {pid}",
                lambda: self._transform(platform, run.item, resolver, canonical_reference),
                retry=True,
            )
            if not transformed.ok:
                return await self._branch_failed(run, pid, transformed)
            formatted: FormattedPost = transformed.value

            published = await self._step(
                f"Publish {pid}",
                lambda: self._publish(platform, formatted),
                retry=True,
            )
            if not published.ok:
                return await self._branch_failed(run, pid, published)

            recorded = await self._step(
                f"Record {pid}",
                lambda: self.ledger.record_platform_outcome(
                    key, pid, Status.SUCCEEDED, published.value, formatted.relative_url
                ),
            )
            if not recorded.ok:
                logger.error("[%s] Could not record %s success: %s", run.execution_id, pid, recorded.error)
                return BranchOutcome(pid, False, error=recorded.kind)

            logger.info("[%s] Published %s to %s: %s", run.execution_id, key, pid, published.value)
            return BranchOutcome(pid, True, url=published.value, relative_url=formatted.relative_url)
        except Exception as exc:
            logger.exception("[%s] Branch %s failed; continuing with others", run.execution_id, pid)
            return await self._branch_failed(run, pid, Err(exc))

    async def _branch_failed(self, run: _Run, platform_id: str, err: Err) -> BranchOutcome:
        logger.error(
            "[%s] %s failed for %s: %s", run.execution_id, platform_id, run.item.key, err.error
        )
        recorded = await self._step(
            f"RecordFailure {platform_id}",
            lambda: self.ledger.record_platform_outcome(run.item.key, platform_id, Status.FAILED),
        )
        if not recorded.ok:
            logger.error("[%s] Could not record %s failure: %s", run.execution_id, platform_id, recorded.error)
        return BranchOutcome(platform_id, False, error=err.kind)

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _catalog_details(self, item: WorkItem, branches: list[BranchOutcome]) -> tuple[str, str]:
        relative = next((b.relative_url for b in branches if b.relative_url), None)
        try:
            post = parse_post(item.content)
        except TransformError as exc:
            logger.warning("Could not re-read frontmatter of %s: %s", item.file_name, exc)
            stem = PurePosixPath(item.file_name).stem
            return relative or f"/{stem}", stem
        return relative or post.relative_url, post.title

    async def _succeed(self, run: _Run, branches: list[BranchOutcome]) -> WorkflowResult:
        item = run.item
        relative, title = self._catalog_details(item, branches)
        entry = CatalogEntry(
            url=relative,
            title=title,
            links={b.platform_id: b.url for b in branches if b.url},
        )
        finalized, saved = await asyncio.gather(
            self._step("FinalizeSucceeded", lambda: self.ledger.finalize(item.key, Status.SUCCEEDED)),
            self._step("SaveCatalog", lambda: self.ledger.upsert_catalog_entry(entry)),
        )
        for written in (finalized, saved):
            if not written.ok:
                logger.error("[%s] Final write failed: %s", run.execution_id, written.error)
                return await self._fail(run, branches, written.kind)

        logger.info("[%s] Cross-posted %s (%s)", run.execution_id, item.key, relative)
        if self.notify_to:
            await self._notify(success_event(self.notify_to, item.file_name, entry.links))
        return run.result(State.SUCCEEDED, branches=branches, catalog_entry=entry)

    async def _fail(
        self,
        run: _Run,
        branches: list[BranchOutcome],
        error: str,
        notify: bool = True,
    ) -> WorkflowResult:
        item = run.item
        finalized = await self._step(
            "FinalizeFailed", lambda: self.ledger.finalize(item.key, Status.FAILED)
        )
        if not finalized.ok:
            logger.error("[%s] Could not mark %s failed: %s", run.execution_id, item.key, finalized.error)
        if notify and item.send_status_email and self.notify_to:
            await self._notify(
                failure_event(self.notify_to, item.file_name, run.execution_id, self.execution_url)
            )
        return run.result(State.FAILED, branches=branches, error=error)

    async def _notify(self, event: NotificationEvent) -> None:
        if self.notifier is None:
            logger.debug("No notifier configured; dropping '%s'", event.subject)
            return
        notified = await self._step("Notify", lambda: self.notifier.emit(event))
        if not notified.ok:
            logger.error("Notification '%s' not delivered: %s", event.subject, notified.error)
