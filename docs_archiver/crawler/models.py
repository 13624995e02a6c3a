"""
Records shared by the crawler components.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ResourceCategory(str, Enum):
    """Kinds of resources a page references."""

    STYLESHEET = "stylesheet"
    SCRIPT = "script"
    IMAGE = "image"
    FONT = "font"
    OTHER = "other"

    @property
    def is_text(self) -> bool:
        return self in (ResourceCategory.STYLESHEET, ResourceCategory.SCRIPT)


class ResourceState(str, Enum):
    PENDING = "pending"
    DOWNLOADING = "downloading"
    SUCCESS = "success"
    FAILED = "failed"


class ArtifactKind(str, Enum):
    """Kinds of saved text files the rewriter understands."""

    MARKUP = "markup"
    STYLESHEET = "stylesheet"
    SCRIPT = "script"


@dataclass
class ResourceRecord:
    """A resource observed on any page, downloaded at most once per run."""

    remote_url: str
    category: ResourceCategory
    local_path: str
    state: ResourceState = ResourceState.PENDING
    error: Optional[str] = None
    error_type: Optional[str] = None
    cached: bool = False
    # URL as observed on the page; remote_url is its normalized form
    fetch_url: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'url': self.remote_url,
            'category': self.category.value,
            'local_path': self.local_path,
            'state': self.state.value,
            'cached': self.cached,
            'error': self.error,
            'error_type': self.error_type,
        }


@dataclass
class NavigationLink:
    url: str
    path: str


@dataclass
class RenderResult:
    """What a renderer hands back for one page."""

    url: str
    markup: Optional[str] = None
    final_url: Optional[str] = None
    title: str = ""
    resource_urls: Dict[str, ResourceCategory] = field(default_factory=dict)
    navigation_links: List[NavigationLink] = field(default_factory=list)
    # Set instead of raising when the page could not be rendered
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.markup is not None


@dataclass
class PageRecord:
    """A rendered (or failed) page of the archived site."""

    url: str
    path: str
    title: str = ""
    artifact_file: Optional[str] = None
    resource_urls: List[str] = field(default_factory=list)
    navigation_links: List[NavigationLink] = field(default_factory=list)
    error: Optional[str] = None
    json_file: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'url': self.url,
            'path': self.path,
            'title': self.title,
            'htmlFile': self.artifact_file,
            'jsonFile': self.json_file,
            'resources': list(self.resource_urls),
            'links': [{'url': link.url, 'path': link.path} for link in self.navigation_links],
            'error': self.error,
        }
