"""
Main site archiver module.

Orchestrates a run: crawling pages, downloading resources, rewriting
references and exporting structured data.
"""

import asyncio
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from .downloader import ResourceStore
from .extractor import AssetExtractor
from .frontier import CrawlTarget, Frontier, TargetState
from .models import ArtifactKind, PageRecord, ResourceCategory, ResourceRecord, ResourceState
from .renderer import HttpRenderer, PageRenderer
from .rewrite import LinkRewriter
from ..exporter.json_extractor import NextDataExtractor, export_page_data, summarize_pages, write_summary
from ..utils.constants import (
    DEFAULT_ALLOWED_HOSTS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_PAGES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PAGE_TIMEOUT,
    DEFAULT_TIMEOUT,
    DEFAULT_WORKERS,
)
from ..utils.errors import MappingError, NavigationError, WriteError
from ..utils.log import get_logger, print_info, print_success, print_warning
from ..utils.paths import (
    PathMapper,
    PathMapping,
    create_output_structure,
    get_domain,
    normalize_url,
    read_text,
    strip_query,
    write_file,
)


@dataclass
class ArchiveResult:
    """Results of an archive run."""

    pages_archived: int = 0
    pages_failed: int = 0
    resources_downloaded: int = 0
    resources_cached: int = 0
    resources_failed: int = 0
    files_rewritten: int = 0
    pages: List[PageRecord] = field(default_factory=list)
    resources: List[ResourceRecord] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    summary_file: Optional[str] = None

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            'pagesArchived': self.pages_archived,
            'pagesFailed': self.pages_failed,
            'resourcesDownloaded': self.resources_downloaded,
            'resourcesCached': self.resources_cached,
            'resourcesFailed': self.resources_failed,
            'filesRewritten': self.files_rewritten,
            'unresolvedReferences': len(self.unresolved),
            'durationSeconds': round(self.duration_seconds, 2),
        }


def build_start_url(domain: str) -> str:
    """Turn a bare domain (or URL) into the normalized start URL."""
    domain = domain.strip()
    if '://' not in domain:
        domain = f"https://{domain}"
    return normalize_url(strip_query(domain))


class SiteArchiver:
    """
    Main site archiver class.

    Coordinates all components to mirror a documentation site.
    """

    # Seconds an idle worker waits for in-flight pages to add links
    IDLE_POLL_INTERVAL = 0.05

    def __init__(
        self,
        domain: str,
        output_dir: str = DEFAULT_OUTPUT_DIR,
        max_pages: Optional[int] = DEFAULT_MAX_PAGES,
        allowed_hosts: Iterable[str] = DEFAULT_ALLOWED_HOSTS,
        workers: int = DEFAULT_WORKERS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: int = DEFAULT_TIMEOUT,
        render_timeout: int = DEFAULT_PAGE_TIMEOUT,
        render_js: bool = True,
        headless: bool = True,
        export_data: bool = True,
        renderer: Optional[Union[PageRenderer, HttpRenderer]] = None
    ):
        """
        Initialize the site archiver.

        Args:
            domain: Domain (or URL) of the site to archive
            output_dir: Directory to save the mirror into
            max_pages: Page budget; None or negative means unlimited
            allowed_hosts: Extra hosts whose resources may be mirrored
            workers: Concurrent page workers
            batch_size: Resources downloaded per batch
            timeout: Resource request timeout in seconds
            render_timeout: Page load timeout in milliseconds
            render_js: Render pages in a browser; False fetches plain HTML
            headless: Run browser in headless mode
            export_data: Write json_data/ files for each page
            renderer: Renderer to use instead of the default one
        """
        self.start_url = build_start_url(domain)
        self.output_dir = os.path.abspath(output_dir)
        self.max_pages = max_pages
        self.workers = max(1, workers)
        self.export_data = export_data

        self.domain = get_domain(self.start_url)
        self.logger = get_logger("crawler")

        if renderer is not None:
            self.renderer = renderer
        elif render_js:
            self.renderer = PageRenderer(timeout=render_timeout, headless=headless)
        else:
            self.renderer = HttpRenderer(timeout=max(1, render_timeout // 1000))

        self.mapper = PathMapper(self.domain, allowed_hosts)
        self.mapping = PathMapping()
        self.frontier = Frontier(max_pages)
        self.extractor = AssetExtractor()
        self.resources = ResourceStore(
            output_dir=self.output_dir,
            mapper=self.mapper,
            mapping=self.mapping,
            timeout=timeout,
            batch_size=batch_size,
        )
        self.rewriter = LinkRewriter(self.output_dir, self.mapping, self.mapper)
        self.json_extractor = NextDataExtractor()

        self._pages: List[PageRecord] = []
        self._errors: List[Dict] = []
        self._files_rewritten = 0

    @property
    def budget_label(self) -> str:
        if self.max_pages is None or self.max_pages < 0:
            return "unlimited"
        return str(self.max_pages)

    async def archive(self) -> ArchiveResult:
        """
        Run the whole archive process.

        Returns:
            ArchiveResult with statistics and records

        Raises:
            OutputRootError: If the output directory cannot be created
        """
        start_time = time.time()

        print_info(f"Starting archive of {self.start_url}")
        print_info(f"Output directory: {self.output_dir}")
        print_info(f"Max pages: {self.budget_label}, workers: {self.workers}")

        # Create output directory structure
        create_output_structure(self.output_dir)

        self.frontier.enqueue(self.start_url)

        try:
            await self.renderer.start()
            await self._crawl_pages()
        finally:
            await self.renderer.stop()

        await self._download_resources()
        self._rewrite_artifacts()

        if self.export_data:
            self._export_page_data()

        result = self._build_result(time.time() - start_time)

        try:
            result.summary_file = write_summary(self.output_dir, self._summary(result))
            self.logger.info(f"Generated summary: {result.summary_file}")
        except WriteError as e:
            self.logger.error(str(e))

        print_success(
            f"Archive complete! {result.pages_archived} pages, "
            f"{result.resources_downloaded} resources in {result.duration_seconds:.1f}s"
        )
        if result.errors:
            print_warning(f"{len(result.errors)} errors recorded")

        return result

    async def _crawl_pages(self) -> None:
        """Crawl pages with a pool of workers sharing the frontier."""
        await asyncio.gather(*(self._worker(i) for i in range(self.workers)))
        self.logger.info(
            f"Crawled {self.frontier.processed_count} pages "
            f"({self.frontier.pending_count} left unvisited)"
        )

    async def _worker(self, worker_id: int) -> None:
        while True:
            target = self.frontier.claim_next()

            if target is None:
                if self.frontier.budget_claimed or self.frontier.in_progress_count == 0:
                    break
                # Others may still discover links
                await asyncio.sleep(self.IDLE_POLL_INTERVAL)
                continue

            try:
                await self._archive_page(target)
            except (MappingError, WriteError) as e:
                self._fail_page(target, e)
            except Exception as e:
                self.logger.error(f"Error archiving {target.normalized_url}: {e}")
                self._fail_page(target, e)

        self.logger.debug(f"Worker {worker_id} finished")

    async def _archive_page(self, target: CrawlTarget) -> None:
        """
        Render a single page, save it and queue what it references.

        Args:
            target: Claimed frontier target
        """
        url = target.normalized_url
        self.logger.info(f"[{self.frontier.processed_count + 1}/{self.budget_label}] Archiving: {url}")

        result = await self.renderer.render(url)
        if not result.ok:
            self._fail_page(target, NavigationError(result.error or "Failed to render page"))
            return

        final_url = normalize_url(result.final_url or url) or url
        if final_url != url and not self.mapper.is_same_origin(final_url):
            self._fail_page(target, NavigationError(f"Redirected off-site to {final_url}"))
            return

        # Pages ignore query strings
        page_url = strip_query(final_url)
        local_path = self.mapper.map_page(page_url)

        owner = self.mapping.url_for(local_path)
        if owner is not None:
            # Reached again through a redirect
            self.mapping.add_redirect(url, owner)
            self.logger.debug(f"Already archived as {owner}: {url}")
            self.frontier.complete(target)
            return

        write_file(os.path.join(self.output_dir, *local_path.split('/')), result.markup)
        self.mapping.add(page_url, local_path, page=True)
        self.mapping.add_redirect(url, page_url)

        page = PageRecord(
            url=page_url,
            path=urlparse(page_url).path or '/',
            title=result.title,
            artifact_file=local_path,
        )

        for resource_url, category in result.resource_urls.items():
            if not self.mapper.is_allowed(resource_url):
                continue
            record = self.resources.register(resource_url, category)
            if record is not None:
                if record.remote_url not in page.resource_urls:
                    page.resource_urls.append(record.remote_url)

        for link in result.navigation_links:
            if not self.mapper.is_same_origin(link.url):
                continue
            page.navigation_links.append(link)
            self.frontier.enqueue(strip_query(link.url))

        self._pages.append(page)
        self.frontier.complete(target)

    def _fail_page(self, target: CrawlTarget, error: Exception) -> None:
        """Record a page failure against its target."""
        if target.state is TargetState.IN_PROGRESS:
            self.frontier.fail(target, str(error))
        self.logger.warning(f"Page failed: {target.normalized_url}: {error}")

        path = urlparse(target.normalized_url).path or '/'
        self._pages.append(PageRecord(url=target.normalized_url, path=path, error=str(error)))
        self._record_error(target.normalized_url, error)

    def _record_error(self, url: str, error: Union[Exception, str], error_type: Optional[str] = None) -> None:
        self._errors.append({
            'url': url,
            'error': str(error),
            'type': error_type or type(error).__name__,
        })

    async def _download_resources(self) -> None:
        """Download every registered resource."""
        if not self.resources.pending_count:
            self.logger.info("No resources to download")
            return

        print_info(f"Downloading {self.resources.pending_count} resources...")

        def discover(record: ResourceRecord, content: str) -> None:
            """Register resources referenced by a stylesheet or script."""
            if record.category is ResourceCategory.STYLESHEET:
                found = self.extractor.extract_css_assets(content, record.remote_url)
            elif record.category is ResourceCategory.SCRIPT:
                found = self.extractor.extract_script_assets(content)
            else:
                return
            for asset_url, category in found.items():
                if self.mapper.is_allowed(asset_url):
                    self.resources.register(asset_url, category)

        await self.resources.download_all(discover=discover)

        for record in self.resources.records_in_state(ResourceState.FAILED):
            self._record_error(record.remote_url, record.error or "Failed to download resource",
                               record.error_type)

    def _rewrite_artifacts(self) -> None:
        """Rewrite references in pages, then stylesheets, then scripts."""
        artifacts = [
            (page.artifact_file, ArtifactKind.MARKUP)
            for page in self._pages if page.artifact_file
        ]
        for kind, category in (
            (ArtifactKind.STYLESHEET, ResourceCategory.STYLESHEET),
            (ArtifactKind.SCRIPT, ResourceCategory.SCRIPT),
        ):
            artifacts.extend(
                (record.local_path, kind)
                for record in self.resources.records_in_state(ResourceState.SUCCESS)
                if record.category is category
            )

        print_info(f"Rewriting {len(artifacts)} files...")

        for local_path, kind in artifacts:
            try:
                if self.rewriter.rewrite(local_path, kind):
                    self._files_rewritten += 1
            except Exception as e:
                self.logger.error(f"Error rewriting {local_path}: {e}")
                self._record_error(local_path, e)

        for local_path in self.rewriter.skipped:
            self._record_error(
                self.mapping.url_for(local_path) or local_path,
                f"Not rewritten, larger than {self.rewriter.max_bytes} bytes: {local_path}",
                "OversizedArtifact",
            )

        if self.rewriter.unresolved:
            self.logger.info(f"{len(self.rewriter.unresolved)} references left unresolved")

    def _export_page_data(self) -> None:
        """Write structured data for every saved page."""
        exported = 0
        for page in self._pages:
            if not page.artifact_file:
                continue
            try:
                markup = read_text(os.path.join(self.output_dir, *page.artifact_file.split('/')))
            except OSError as e:
                self.logger.warning(f"Cannot read {page.artifact_file}: {e}")
                continue
            page.json_file = export_page_data(self.output_dir, page, markup, self.json_extractor)
            if page.json_file:
                exported += 1

        self.logger.info(f"Exported structured data for {exported} pages")

    def _build_result(self, duration: float) -> ArchiveResult:
        records = self.resources.records
        return ArchiveResult(
            pages_archived=sum(1 for page in self._pages if page.artifact_file),
            pages_failed=sum(1 for page in self._pages if page.error),
            resources_downloaded=sum(1 for r in records if r.state is ResourceState.SUCCESS),
            resources_cached=sum(1 for r in records if r.cached),
            resources_failed=sum(1 for r in records if r.state is ResourceState.FAILED),
            files_rewritten=self._files_rewritten,
            pages=list(self._pages),
            resources=records,
            errors=list(self._errors),
            unresolved=sorted(self.rewriter.unresolved),
            duration_seconds=duration,
        )

    def _summary(self, result: ArchiveResult) -> Dict[str, Any]:
        return {
            'baseUrl': self.start_url,
            'domain': self.domain,
            'stats': result.stats,
            'pages': summarize_pages(result.pages),
            'resources': [record.to_dict() for record in result.resources],
            'errors': result.errors,
            'unresolved': result.unresolved,
        }
