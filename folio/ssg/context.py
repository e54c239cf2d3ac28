"""
页面上下文数据结构
模板只读取这里的字段，不依赖 ORM 对象的行为
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class PageKind(Enum):
    INDEX = 'index'
    DETAIL = 'detail'
    AUTHOR = 'author'
    SEARCH = 'search'


@dataclass
class MenuItem:
    name: str
    path: str
    url: str


@dataclass
class Pagination:
    current_page: int = 1
    total_pages: int = 1
    has_prev: bool = False
    has_next: bool = False
    prev_url: str = ''
    next_url: str = ''
    items: List[Any] = field(default_factory=list)


@dataclass
class SeoMeta:
    title: str = ''
    description: str = ''
    keywords: str = ''
    robots: str = ''
    canonical_url: str = ''
    image: str = ''


@dataclass
class AuthorView:
    handle: str
    name: str = ''
    bio: str = ''
    photo_url: str = ''
    social_links: Dict[str, str] = field(default_factory=dict)
    url: str = ''


@dataclass
class ImageView:
    url: str
    alt: str = ''
    caption: str = ''
    attribution: str = ''
    attribution_url: str = ''


@dataclass
class ContentView:
    """列表与详情共用的内容视图"""
    heading: str
    slug: str
    url: str
    kind: str
    summary: str = ''
    section_name: str = ''
    section_path: str = ''
    published_at: Any = None
    featured: bool = False
    series: str = ''
    series_order: int = 0
    tags: List[str] = field(default_factory=list)
    author: Optional[AuthorView] = None
    header_image: Optional[ImageView] = None
    html: str = ''


@dataclass
class RelationBlocks:
    related: List[ContentView] = field(default_factory=list)
    series_prev: Optional[ContentView] = None
    series_next: Optional[ContentView] = None
    series_backward: List[ContentView] = field(default_factory=list)
    series_forward: List[ContentView] = field(default_factory=list)

    @property
    def is_series(self):
        return bool(self.series_prev or self.series_next or self.series_backward or self.series_forward)

    @property
    def empty(self):
        return not self.related and not self.is_series


@dataclass
class PageContext:
    kind: PageKind
    site_name: str
    site_slug: str
    asset_path: str
    menu: List[MenuItem] = field(default_factory=list)
    settings: Dict[str, str] = field(default_factory=dict)
    title: str = ''
    seo: SeoMeta = field(default_factory=SeoMeta)
    layout_css: str = ''
    include_default_css: bool = True
    # INDEX
    section: Optional[MenuItem] = None
    pagination: Optional[Pagination] = None
    # DETAIL
    content: Optional[ContentView] = None
    blocks: RelationBlocks = field(default_factory=RelationBlocks)
    # AUTHOR
    author: Optional[AuthorView] = None
    contents: List[ContentView] = field(default_factory=list)
    # SEARCH
    search_engine_id: str = ''
