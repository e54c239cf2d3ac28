"""
静态站点生成服务
每次生成都是全量重建：先渲染到 staging 目录，再整体替换站点输出目录
"""
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List
from xml.sax.saxutils import escape
from flask import current_app
from folio.exceptions import GenerationError
from folio.models import Site, Section, Content, Contributor, Profile, Image
from folio.services.settings_service import SettingsService, Keys
from folio.ssg.context import (
    PageKind, PageContext, MenuItem, SeoMeta, AuthorView, ImageView, ContentView, RelationBlocks
)
from folio.ssg.layouts import PageRenderer, resolve_layout, default_css
from folio.ssg.pagination import publishable, order_newest_first, iter_pages, page_output_path, page_url
from folio.ssg.relations import compute_relations
from folio.utils import workspace
from folio.utils.file_helper import clean_dir, copy_tree, copy_file, write_text, swap_dir, safe_name
from folio.utils.locks import site_locks
from folio.utils.markdown import render as render_markdown
from folio.utils.text import slugify

SITEMAP_NS = 'http://www.sitemaps.org/schemas/sitemap/0.9'


@dataclass
class GenerationReport:
    pages_generated: int = 0
    index_pages: int = 0
    author_pages: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        return {
            'pages_generated': self.pages_generated,
            'index_pages': self.index_pages,
            'author_pages': self.author_pages,
            'errors': list(self.errors),
        }


class SiteGenerator:
    """一次生成过程的状态"""

    def __init__(self, site, now=None):
        self.site = site
        self.now = now or datetime.utcnow()
        self.report = GenerationReport()
        self.renderer = PageRenderer()
        self.urls = []  # (url, lastmod) 供 sitemap 使用
        self._views = {}

    # ------------------------------------------------------------------
    # 加载
    # ------------------------------------------------------------------
    def load(self):
        self.settings = SettingsService.load(self.site)
        self.base = self.settings.base_path
        self.sections = Section.query.filter_by(site_id=self.site.id).order_by(Section.name).all()
        self.root_section = next((s for s in self.sections if s.is_root), None)
        self.contents = order_newest_first(
            publishable(Content.query.filter_by(site_id=self.site.id).all(), self.now))
        self.contributors = Contributor.query.filter_by(site_id=self.site.id).order_by(Contributor.handle).all()
        self.menu = [
            MenuItem(name=s.name, path=s.path, url=f'{self.base}{s.path}/')
            for s in self.sections if not s.is_root
        ]
        self.photos = {}  # 输出中的头像文件名 -> 源路径
        self.uses_default_css = False
        # 正文中图片的署名元数据，按输出地址索引
        self.image_meta = {}
        for image in Image.query.filter_by(site_id=self.site.id).all():
            if not image.attribution:
                continue
            meta = {'title': image.title or '', 'attribution': image.attribution,
                    'attribution_url': image.attribution_url or ''}
            self.image_meta[f'{self.base}images/{image.file_path}'] = meta
            self.image_meta[f'images/{image.file_path}'] = meta

    # ------------------------------------------------------------------
    # 视图构建
    # ------------------------------------------------------------------
    def content_url(self, content):
        if content.section_path:
            return f'{self.base}{content.section_path}/{content.slug}/'
        return f'{self.base}{content.slug}/'

    def content_output_path(self, content):
        parts = [content.section_path] if content.section_path else []
        return '/'.join(parts + [content.slug, 'index.html'])

    def author_slug(self, handle):
        return slugify(handle) or safe_name(handle, 'author')

    def image_view(self, image):
        if image is None:
            return None
        return ImageView(
            url=f'{self.base}images/{image.file_path}',
            alt=image.alt_text or image.title or '',
            caption=image.caption or '',
            attribution=image.attribution or '',
            attribution_url=image.attribution_url or '',
        )

    def photo_url(self, photo_path):
        if not photo_path:
            return ''
        name = os.path.basename(photo_path)
        self.photos[name] = photo_path
        return f'{self.base}profiles/{name}'

    def author_view(self, contributor=None, username=''):
        """Contributor 为署名记录，关联的 Profile 提供公开展示字段"""
        if contributor is not None:
            profile = contributor.profile
            handle = contributor.handle
            name = contributor.full_name
            bio = contributor.bio
            photo = contributor.photo_path
            links = contributor.social_links_map
            if profile is not None:
                name = ' '.join(p for p in (profile.name, profile.surname) if p) or name
                bio = profile.bio or bio
                photo = profile.photo_path or photo
                links = profile.social_links_map or links
        else:
            handle = username
            profile = Profile.query.filter_by(slug=username).first()
            name = ' '.join(p for p in (profile.name, profile.surname) if p) if profile else ''
            bio = profile.bio if profile else ''
            photo = profile.photo_path if profile else ''
            links = profile.social_links_map if profile else {}
        return AuthorView(
            handle=handle,
            name=name or handle,
            bio=bio or '',
            photo_url=self.photo_url(photo),
            social_links=links,
            url=f'{self.base}authors/{self.author_slug(handle)}/',
        )

    def content_view(self, content):
        view = self._views.get(content.id)
        if view is not None:
            return view
        author = None
        if content.contributor is not None:
            author = self.author_view(contributor=content.contributor)
        elif content.display_handle:
            author = self.author_view(username=content.display_handle)
        view = ContentView(
            heading=content.heading,
            slug=content.slug,
            url=self.content_url(content),
            kind=content.kind,
            summary=content.summary or '',
            section_name=content.section.name if content.section else '',
            section_path=content.section_path,
            published_at=content.published_at,
            featured=bool(content.featured),
            series=content.series or '',
            series_order=content.series_order or 0,
            tags=[t.name for t in content.tags],
            author=author,
            header_image=self.image_view(content.header_image),
        )
        self._views[content.id] = view
        return view

    def base_context(self, kind, layout, title):
        return PageContext(
            kind=kind,
            site_name=self.site.name,
            site_slug=self.site.slug,
            asset_path=self.base,
            menu=self.menu,
            settings=self.settings.as_map(),
            title=title,
            seo=SeoMeta(title=title, description=self.settings.get(Keys.DESCRIPTION) or self.site.description or ''),
            layout_css=layout.css,
            include_default_css=layout.include_default_css,
            search_engine_id=self.search_engine_id,
        )

    @property
    def search_engine_id(self):
        if self.settings.get_bool(Keys.SEARCH_ENABLED):
            return self.settings.get(Keys.SEARCH_ID) or 'enabled'
        return ''

    def absolute(self, url):
        return f'{self.settings.base_url}{url}'

    # ------------------------------------------------------------------
    # 各类页面
    # ------------------------------------------------------------------
    def render_page(self, page, layout, label):
        """模板运行时错误统一转为 GenerationError，由调用方记录后继续"""
        try:
            return self.renderer.render(page, layout)
        except Exception as e:
            raise GenerationError(f'{label}: {e}', payload={'page': label, 'layout': layout.name}) from e

    def write_page(self, relpath, page, layout):
        html = self.render_page(page, layout, relpath)
        self.uses_default_css = self.uses_default_css or layout.include_default_css
        write_text(os.path.join(self.staging, relpath), html)

    def record_error(self, item, error, **extra):
        current_app.logger.warning(f'⚠️ 页面渲染失败 {item}: {error.message}')
        self.report.errors.append(dict(extra, item=item, error=error.message))

    def build_indexes(self):
        """站点首页 + 每个栏目的分页列表（page 类型的内容不进入列表）"""
        listing = [c for c in self.contents if c.kind != Content.KIND_PAGE]
        page_size = self.settings.index_page_size

        targets = [(self.root_section, listing)]
        for section in self.sections:
            if section.is_root:
                continue
            targets.append((section, [c for c in listing if c.section_id == section.id]))

        for section, items in targets:
            path = section.path if section is not None else ''
            layout = resolve_layout(self.site, section)
            title = section.name if section is not None and path else self.site.name
            for pagination in iter_pages(items, page_size, self.base, path, now=self.now):
                pagination.items = [self.content_view(c) for c in pagination.items]
                page = self.base_context(PageKind.INDEX, layout, title)
                page.pagination = pagination
                if path:
                    page.section = MenuItem(name=section.name, path=path, url=f'{self.base}{path}/')
                try:
                    self.write_page(page_output_path(path, pagination.current_page), page, layout)
                except GenerationError as e:
                    self.record_error(f'index:/{path}:{pagination.current_page}', e)
                    continue
                self.urls.append((page_url(self.base, path, pagination.current_page), None))
                self.report.index_pages += 1

    def build_detail(self, content):
        layout = resolve_layout(self.site, content.section)
        relations = compute_relations(
            content, self.contents,
            enabled=self.settings.get_bool(Keys.BLOCKS_ENABLED, True),
            max_items=self.settings.get_int(Keys.BLOCKS_MAX_ITEMS, 5),
            multi_section=self.settings.get_bool(Keys.BLOCKS_MULTI_SECTION, True),
        )
        view = self.content_view(content)
        try:
            view.html = render_markdown(content.body, self.image_meta)
        except Exception as e:
            raise GenerationError(f'markdown: {e}', payload={'item': content.short_id}) from e

        page = self.base_context(PageKind.DETAIL, layout, content.heading)
        page.content = view
        page.blocks = RelationBlocks(
            related=[self.content_view(c) for c in relations.related],
            series_prev=self.content_view(relations.prev) if relations.prev else None,
            series_next=self.content_view(relations.next) if relations.next else None,
            series_backward=[self.content_view(c) for c in relations.backward],
            series_forward=[self.content_view(c) for c in relations.forward],
        )
        canonical = content.canonical_url or (self.absolute(view.url) if self.settings.base_url else '')
        page.seo = SeoMeta(
            title=content.heading,
            description=content.description or content.summary or page.seo.description,
            keywords=content.keywords or '',
            robots=content.robots or '',
            canonical_url=canonical,
            image=view.header_image.url if view.header_image else '',
        )
        self.write_page(self.content_output_path(content), page, layout)
        self.urls.append((view.url, content.updated_at))
        self.report.pages_generated += 1

    def build_details(self):
        for content in self.contents:
            try:
                self.build_detail(content)
            except GenerationError as e:
                self.record_error(content.short_id, e, heading=content.heading)

    def collect_authors(self):
        """贡献者 + 未匹配贡献者 handle 的裸用户名；只保留有可发布内容的作者"""
        authors = []
        handles = set()
        for contributor in self.contributors:
            handles.add(contributor.handle)
            items = [c for c in self.contents
                     if c.contributor_id == contributor.id or c.author_username == contributor.handle]
            if items:
                authors.append((contributor, contributor.handle, items))

        usernames = sorted({c.author_username for c in self.contents
                            if c.contributor_id is None and c.author_username} - handles)
        for username in usernames:
            items = [c for c in self.contents if c.contributor_id is None and c.author_username == username]
            authors.append((None, username, items))
        return authors

    def build_authors(self):
        layout = resolve_layout(self.site)
        for contributor, handle, items in self.collect_authors():
            try:
                author = self.author_view(contributor=contributor, username=handle)
                page = self.base_context(PageKind.AUTHOR, layout, author.name)
                page.author = author
                page.contents = [self.content_view(c) for c in order_newest_first(items)]
                self.write_page(f'authors/{self.author_slug(handle)}/index.html', page, layout)
                self.urls.append((author.url, None))
                self.report.author_pages += 1
            except GenerationError as e:
                self.record_error(f'author:{handle}', e)

    def build_search(self):
        if not self.settings.get_bool(Keys.SEARCH_ENABLED):
            return
        layout = resolve_layout(self.site)
        page = self.base_context(PageKind.SEARCH, layout, 'Search')
        try:
            self.write_page('search/index.html', page, layout)
        except GenerationError as e:
            self.record_error('search', e)

    def build_sitemap(self):
        if not self.settings.base_url:
            return
        lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<urlset xmlns="{SITEMAP_NS}">']
        for url, lastmod in self.urls:
            lines.append('  <url>')
            lines.append(f'    <loc>{escape(self.absolute(url))}</loc>')
            if lastmod:
                lines.append(f'    <lastmod>{lastmod.strftime("%Y-%m-%d")}</lastmod>')
            lines.append('  </url>')
        lines.append('</urlset>')
        write_text(os.path.join(self.staging, 'sitemap.xml'), '\n'.join(lines) + '\n')

    def build_robots(self):
        text = self.settings.get(Keys.ROBOTS_TXT).strip()
        if not text:
            return
        if self.settings.base_url:
            text += f'\n\nSitemap: {self.absolute(self.base)}sitemap.xml'
        write_text(os.path.join(self.staging, 'robots.txt'), text + '\n')

    def copy_assets(self):
        if self.uses_default_css:
            write_text(os.path.join(self.staging, 'static', 'css', 'main.css'), default_css())
        copy_tree(workspace.images_dir(self.site), os.path.join(self.staging, 'images'))
        root = workspace.profiles_dir()
        for name, photo_path in self.photos.items():
            source = photo_path if os.path.isabs(photo_path) else os.path.join(root, photo_path)
            if os.path.isfile(source):
                copy_file(source, os.path.join(self.staging, 'profiles', name))
            else:
                current_app.logger.warning(f'⚠️ 头像文件不存在: {source}')

    # ------------------------------------------------------------------
    def run(self):
        self.load()
        target = workspace.html_dir(self.site)
        self.staging = target + '.staging'
        clean_dir(self.staging)
        try:
            self.build_indexes()
            self.build_details()
            self.build_authors()
            self.build_search()
            self.build_sitemap()
            self.build_robots()
            self.copy_assets()
            swap_dir(self.staging, target)
        except Exception:
            shutil.rmtree(self.staging, ignore_errors=True)
            raise
        return self.report


class GenerationService:
    """站点生成入口，持有站点执行槽"""

    @staticmethod
    def generate(site: Site, now=None) -> GenerationReport:
        with site_locks.slot(site.id):
            current_app.logger.info(f'🏗️ 开始生成站点: {site.slug}')
            report = SiteGenerator(site, now).run()
            current_app.logger.info(
                f'✅ 站点 {site.slug} 生成完成: {report.pages_generated} 页, '
                f'{report.index_pages} 列表页, {report.author_pages} 作者页, {len(report.errors)} 个错误')
            return report


generation_service = GenerationService()
