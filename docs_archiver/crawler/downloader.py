"""
Resource store for fetching and saving website resources.

Uses aiohttp for asynchronous downloads in fixed-size batches.
"""

import asyncio
import os
from typing import Callable, Dict, List, Optional, Union

import aiohttp
from aiohttp import ClientTimeout, ClientError

from .models import ResourceCategory, ResourceRecord, ResourceState
from ..utils.constants import DEFAULT_BATCH_SIZE, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from ..utils.errors import ArchiverError, FetchError, MappingError
from ..utils.log import get_logger
from ..utils.paths import PathMapper, PathMapping, normalize_url, read_text, write_file


# Called with each stored record and its text content (stylesheets/scripts)
DiscoverCallback = Callable[[ResourceRecord, str], None]


class ResourceStore:
    """
    Registry and downloader of every resource observed during a run.

    Each remote URL is registered once and fetched at most once. Files
    already present on disk are reused without a request.
    """

    def __init__(
        self,
        output_dir: str,
        mapper: PathMapper,
        mapping: PathMapping,
        timeout: int = DEFAULT_TIMEOUT,
        batch_size: int = DEFAULT_BATCH_SIZE,
        user_agent: str = DEFAULT_USER_AGENT
    ):
        """
        Initialize the resource store.

        Args:
            output_dir: Base output directory for saving resources
            mapper: Maps resource URLs to local paths
            mapping: Table that successful downloads are recorded in
            timeout: Request timeout in seconds
            batch_size: Resources fetched concurrently per batch
            user_agent: User agent string for requests
        """
        self.output_dir = output_dir
        self.mapper = mapper
        self.mapping = mapping
        self.timeout = ClientTimeout(total=timeout)
        self.batch_size = max(1, batch_size)
        self.user_agent = user_agent
        self.logger = get_logger("downloader")

        self._records: Dict[str, ResourceRecord] = {}
        # local path -> normalized URL it is reserved for
        self._owners: Dict[str, str] = {}

    def register(self, url: str, category: ResourceCategory) -> Optional[ResourceRecord]:
        """
        Register a resource URL for download.

        The record's local path is reserved right away; a later URL mapping
        to the same path is registered as failed and never fetched.

        Args:
            url: Absolute resource URL
            category: Category the resource was referenced as

        Returns:
            The (possibly pre-existing) record, or None if the URL cannot be
            mapped to a local path
        """
        key = normalize_url(url)
        category = ResourceCategory(category)

        record = self._records.get(key) if key else None
        if record is not None:
            # A more specific category wins while nothing has been fetched yet
            if (record.category is ResourceCategory.OTHER
                    and category is not ResourceCategory.OTHER
                    and record.state is ResourceState.PENDING):
                try:
                    local_path = self.mapper.map_resource(key, category.value)
                    self._reserve(key, local_path)
                except MappingError as e:
                    self.logger.debug(f"Keeping category of {key}: {e}")
                else:
                    if local_path != record.local_path:
                        self._release(key, record.local_path)
                    record.local_path = local_path
                    record.category = category
            return record

        try:
            if not key:
                raise MappingError(f"Not an http(s) URL: {url!r}")
            local_path = self.mapper.map_resource(key, category.value)
        except MappingError as e:
            self.logger.debug(f"Skipping resource: {e}")
            return None

        record = ResourceRecord(
            remote_url=key,
            category=category,
            local_path=local_path,
            fetch_url=normalize_url(url, keep_trailing_slash=True),
        )
        self._records[key] = record
        try:
            self._reserve(key, local_path)
        except MappingError as e:
            self._fail(record, e)
        return record

    def _reserve(self, key: str, local_path: str) -> None:
        owner = self._owners.setdefault(local_path, key)
        if owner != key:
            raise MappingError(f"{local_path} is already reserved for {owner}")

    def _release(self, key: str, local_path: str) -> None:
        if self._owners.get(local_path) == key:
            del self._owners[local_path]

    def get(self, url: str) -> Optional[ResourceRecord]:
        return self._records.get(normalize_url(url))

    @property
    def records(self) -> List[ResourceRecord]:
        return list(self._records.values())

    @property
    def pending_count(self) -> int:
        return sum(1 for r in self._records.values() if r.state is ResourceState.PENDING)

    def records_in_state(self, state: ResourceState) -> List[ResourceRecord]:
        return [r for r in self._records.values() if r.state is state]

    def file_path(self, local_path: str) -> str:
        """Filesystem path of a local path under the output root."""
        return os.path.join(self.output_dir, *local_path.split('/'))

    async def download_all(self, discover: Optional[DiscoverCallback] = None) -> Dict[str, int]:
        """
        Download every pending resource.

        Batches run one after another; records registered by discover
        while a batch runs are picked up by later batches.

        Args:
            discover: Optional callback receiving each stored text resource
                      (for registering sub-resources)

        Returns:
            Counts of successful, cached and failed resources
        """
        pending = self.pending_count
        if pending:
            self.logger.info(f"Downloading {pending} resources...")

        async with aiohttp.ClientSession(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent}
        ) as session:
            while True:
                batch = self.records_in_state(ResourceState.PENDING)[:self.batch_size]
                if not batch:
                    break

                for record in batch:
                    record.state = ResourceState.DOWNLOADING

                results = await asyncio.gather(
                    *(self._download(session, record, discover) for record in batch),
                    return_exceptions=True
                )

                for record, result in zip(batch, results):
                    if isinstance(result, Exception):
                        self._fail(record, result)

        stats = {
            'success': len(self.records_in_state(ResourceState.SUCCESS)),
            'cached': sum(1 for r in self._records.values() if r.cached),
            'failed': len(self.records_in_state(ResourceState.FAILED)),
        }
        self.logger.info(
            f"Downloaded {stats['success']} resources "
            f"({stats['cached']} cached), {stats['failed']} failed"
        )
        return stats

    async def _download(
        self,
        session: aiohttp.ClientSession,
        record: ResourceRecord,
        discover: Optional[DiscoverCallback] = None
    ) -> None:
        """
        Download a single resource.

        Raises:
            MappingError: If the local path belongs to another URL
            FetchError: If the resource could not be fetched
            WriteError: If the file could not be written
        """
        self._check_owner(record)

        file_path = self.file_path(record.local_path)

        if os.path.isfile(file_path):
            self._succeed(record, cached=True)
            self.logger.debug(f"Cached: {record.remote_url} -> {record.local_path}")
            if discover and record.category.is_text:
                try:
                    content = read_text(file_path)
                except OSError as e:
                    self.logger.debug(f"Cannot read cached {file_path}: {e}")
                else:
                    self._discover(discover, record, content)
            return

        content = await self._fetch(session, record)
        write_file(file_path, content)
        self._succeed(record)
        self.logger.debug(f"Downloaded: {record.remote_url} -> {record.local_path}")

        if discover and isinstance(content, str):
            self._discover(discover, record, content)

    def _check_owner(self, record: ResourceRecord) -> None:
        """Raise MappingError unless the record owns its local path."""
        owner = self._owners.get(record.local_path)
        if owner != record.remote_url:
            raise MappingError(f"{record.local_path} is reserved for {owner}")
        owner = self.mapping.url_for(record.local_path)
        if owner is not None and owner != record.remote_url:
            raise MappingError(f"{record.local_path} already holds {owner}")

    async def _fetch(self, session: aiohttp.ClientSession, record: ResourceRecord) -> Union[str, bytes]:
        url = record.fetch_url or record.remote_url
        try:
            async with session.get(url, allow_redirects=True) as response:
                if response.status >= 400:
                    raise FetchError(url, f"HTTP {response.status}")
                if record.category.is_text:
                    return await response.text(errors="replace")
                return await response.read()
        except ClientError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e
        except asyncio.TimeoutError as e:
            raise FetchError(url, "Timeout") from e

    def _discover(self, discover: DiscoverCallback, record: ResourceRecord, content: str) -> None:
        try:
            discover(record, content)
        except Exception as e:
            self.logger.debug(f"Discovery error for {record.remote_url}: {e}")

    def _succeed(self, record: ResourceRecord, cached: bool = False) -> None:
        if not self.mapping.add(record.remote_url, record.local_path):
            raise MappingError(f"Path clash for {record.remote_url} at {record.local_path}")
        record.state = ResourceState.SUCCESS
        record.cached = cached
        record.error = None
        record.error_type = None

    def _fail(self, record: ResourceRecord, error: Exception) -> None:
        record.state = ResourceState.FAILED
        record.error_type = type(error).__name__
        if isinstance(error, FetchError):
            record.error = error.reason
        else:
            record.error = str(error)
        level = self.logger.debug if isinstance(error, ArchiverError) else self.logger.warning
        level(f"Download failed for {record.remote_url}: {record.error}")
