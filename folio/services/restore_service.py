"""
Markdown 恢复服务
- rich 模式：存在 meta/ 目录，先按自然键（name / path / handle）恢复元数据，再导入内容
- basic 模式：只有 Markdown 文件，按 frontmatter 引用查找或创建栏目、贡献者、标签

恢复总是新建 Content 记录，重复恢复会产生重复内容。
备份中的 short_id 在目标站点未被占用时沿用，保持 slug 与链接不变。
"""
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List
import yaml
from flask import current_app
from folio.extensions import db
from folio.exceptions import SyncError, NotFound
from folio.models import Content, Layout, Section, Contributor, Tag, Image, ContentImage
from folio.utils import frontmatter, workspace
from folio.utils.file_helper import copy_file, get_file_extension
from folio.utils.text import slugify, as_bool, as_int, to_datetime
from .export_service import META_DIR, CONTENT_DIR, layout_stem, profile_stem

MODE_RICH = 'rich'
MODE_BASIC = 'basic'

_SHORT_ID_RE = re.compile(r'^[0-9a-z]{1,16}$')


@dataclass
class RestoreReport:
    mode: str = MODE_BASIC
    contents_created: int = 0
    layouts: int = 0
    sections: int = 0
    contributors: int = 0
    tags: int = 0
    images: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        return {
            'mode': self.mode,
            'contents_created': self.contents_created,
            'layouts': self.layouts,
            'sections': self.sections,
            'contributors': self.contributors,
            'tags': self.tags,
            'images': self.images,
            'errors': list(self.errors),
        }


def _load_yaml(path, default):
    if not os.path.isfile(path):
        return default
    with open(path, encoding='utf-8') as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as e:
            raise SyncError(f'元数据解析失败 {os.path.basename(path)}: {e}')
    return default if data is None else data


def iter_markdown_files(root):
    """递归列出 .md 文件，按路径排序"""
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
        for name in sorted(filenames):
            if name.lower().endswith('.md'):
                found.append(os.path.join(dirpath, name))
    return found


class EntityResolver:
    """按自然键查找或创建站点下的实体，结果在一次恢复 / 导入内缓存"""

    def __init__(self, site, report=None):
        self.site = site
        self.report = report
        self._sections = {}
        self._contributors = {}
        self._tags = {}

    def _count(self, attr):
        if self.report is not None:
            setattr(self.report, attr, getattr(self.report, attr) + 1)

    def section(self, path, name=None, create=True):
        path = Section.normalize_path(path)
        if path in self._sections:
            return self._sections[path]
        section = Section.query.filter_by(site_id=self.site.id, path=path).first()
        if section is None and create:
            section = Section(site_id=self.site.id, path=path,
                              name=name or (path.split('/')[-1] if path else Section.ROOT_NAME))
            db.session.add(section)
            db.session.flush()
            self._count('sections')
        self._sections[path] = section
        return section

    def contributor(self, handle, create=True):
        handle = (handle or '').strip()
        if not handle:
            return None
        if handle in self._contributors:
            return self._contributors[handle]
        contributor = Contributor.query.filter_by(site_id=self.site.id, handle=handle).first()
        if contributor is None and create:
            contributor = Contributor(site_id=self.site.id, handle=handle, name=handle)
            db.session.add(contributor)
            db.session.flush()
            self._count('contributors')
        self._contributors[handle] = contributor
        return contributor

    def tag(self, name, slug=None):
        name = (name or '').strip()
        if not name:
            return None
        if name in self._tags:
            return self._tags[name]
        tag = Tag.query.filter_by(site_id=self.site.id, name=name).first()
        if tag is None:
            tag = Tag(site_id=self.site.id, name=name, slug=slug or slugify(name) or name)
            db.session.add(tag)
            db.session.flush()
            self._count('tags')
        self._tags[name] = tag
        return tag


def apply_frontmatter(content, meta, body, resolver, filename=None):
    """
    把 frontmatter 字段写入 Content（新建与重新导入共用）。
    未指定 draft 时默认为草稿。
    """
    content.heading = frontmatter.extract_title(meta, body, filename)
    content.body = body
    content.summary = str(meta.get('summary') or '')
    kind = str(meta.get('kind') or Content.KIND_ARTICLE).lower()
    content.kind = kind if kind in Content.KINDS else Content.KIND_ARTICLE
    content.draft = as_bool(meta.get('draft'), default=True)
    content.featured = as_bool(meta.get('featured'), default=False)
    content.series = str(meta.get('series') or '')
    content.series_order = as_int(meta.get('series_order', meta.get('series-order')), 0)
    content.description = str(meta.get('description') or '')
    content.keywords = str(meta.get('keywords') or '')
    content.robots = str(meta.get('robots') or '')
    content.canonical_url = str(meta.get('canonical-url') or meta.get('canonical_url') or '')
    content.published_at = to_datetime(meta.get('published_at', meta.get('published-at')))

    if 'section' in meta:
        content.section = resolver.section(meta.get('section') or '')
    elif content.section is None:
        content.section = resolver.section('')

    contributor = resolver.contributor(str(meta.get('contributor') or ''))
    content.contributor = contributor
    content.author_username = str(meta.get('author') or '')
    content.tags = [t for t in (resolver.tag(name) for name in frontmatter.as_list(meta.get('tags'))) if t]
    return content


class RestoreService:
    """从备份目录恢复站点"""

    @staticmethod
    def restore_layouts(site, meta_dir, report):
        layouts = {}
        for item in _load_yaml(os.path.join(meta_dir, 'layouts.yml'), []):
            name = str(item.get('name') or '').strip()
            if not name:
                continue
            layout = Layout.query.filter_by(site_id=site.id, name=name).first()
            if layout is None:
                layout = Layout(site_id=site.id, name=name)
                db.session.add(layout)
                report.layouts += 1
            layout.description = item.get('description') or ''
            layout.exclude_default_css = as_bool(item.get('exclude_default_css'))
            for ext, attr in (('html', 'code'), ('css', 'css')):
                path = os.path.join(meta_dir, 'layouts', f'{layout_stem(name)}.{ext}')
                if os.path.isfile(path):
                    with open(path, encoding='utf-8') as fh:
                        setattr(layout, attr, fh.read())
            db.session.flush()
            if as_bool(item.get('default')):
                site.default_layout_id = layout.id
            layouts[name] = layout
        return layouts

    @staticmethod
    def restore_images(site, import_path, meta_dir, report):
        images = {}
        entries = _load_yaml(os.path.join(meta_dir, 'images.yml'), {})
        target_root = workspace.images_dir(site)
        for key, item in entries.items():
            item = item or {}
            path = str(item.get('path') or key)
            image = Image.query.filter_by(site_id=site.id, file_path=path).first()
            if image is None:
                image = Image(site_id=site.id, file_path=path)
                db.session.add(image)
                report.images += 1
            image.file_name = item.get('file_name') or os.path.basename(path)
            image.alt_text = item.get('alt') or ''
            image.title = item.get('title') or ''
            image.caption = item.get('caption') or ''
            image.attribution = item.get('attribution') or ''
            image.attribution_url = item.get('attribution_url') or ''

            source = os.path.join(import_path, 'images', path)
            if os.path.isfile(source):
                copy_file(source, os.path.join(target_root, path))
            else:
                report.errors.append({'item': f'image:{path}', 'error': '备份中缺少图片文件'})
            images[path] = image
        db.session.flush()
        return images

    @staticmethod
    def restore_meta(site, import_path, report, resolver):
        meta_dir = os.path.join(import_path, META_DIR)
        layouts = RestoreService.restore_layouts(site, meta_dir, report)
        images = RestoreService.restore_images(site, import_path, meta_dir, report)

        for item in _load_yaml(os.path.join(meta_dir, 'sections.yml'), []):
            section = resolver.section(item.get('path') or '', name=item.get('name'))
            section.name = item.get('name') or section.name
            section.description = item.get('description') or ''
            layout = layouts.get(item.get('layout') or '')
            section.layout_id = layout.id if layout else None
            header = images.get(item.get('header_image') or '')
            section.header_image_id = header.id if header else None

        profiles_root = workspace.profiles_dir()
        for item in _load_yaml(os.path.join(meta_dir, 'contributors.yml'), []):
            contributor = resolver.contributor(item.get('handle'))
            if contributor is None:
                continue
            contributor.name = item.get('name') or ''
            contributor.surname = item.get('surname') or ''
            contributor.bio = item.get('bio') or ''
            contributor.social_links_map = item.get('social_links') or {}
            contributor.photo_path = RestoreService.restore_profile_photo(
                site, import_path, contributor, item.get('photo_path') or '', profiles_root)

        for item in _load_yaml(os.path.join(meta_dir, 'tags.yml'), []):
            resolver.tag(item.get('name'), slug=item.get('slug'))
        db.session.flush()
        return images

    @staticmethod
    def restore_profile_photo(site, import_path, contributor, photo_path, profiles_root):
        """profiles/<stem>.<ext> 复制到头像目录，返回新的相对路径"""
        ext = get_file_extension(photo_path)
        if not ext:
            return photo_path
        stem = profile_stem(contributor.handle)
        source = os.path.join(import_path, 'profiles', f'{stem}.{ext}')
        if not os.path.isfile(source):
            return photo_path
        relpath = os.path.join(site.slug, f'{stem}.{ext}')
        copy_file(source, os.path.join(profiles_root, relpath))
        return relpath

    @staticmethod
    def restore_content_images(site, meta_dir, created, images, report):
        links = _load_yaml(os.path.join(meta_dir, 'content_images.yml'), {})
        for short_id, items in links.items():
            content = created.get(str(short_id))
            if content is None:
                continue
            for item in items or []:
                image = images.get(item.get('image_path') or '')
                if image is None:
                    report.errors.append({'item': f'content-image:{short_id}',
                                          'error': f"图片不存在: {item.get('image_path')}"})
                    continue
                db.session.add(ContentImage(
                    content=content, image=image,
                    is_header=as_bool(item.get('is_header')),
                    is_featured=as_bool(item.get('is_featured')),
                    order_num=as_int(item.get('order_num'), 0),
                ))

    @staticmethod
    def restore_identity(site, content, meta):
        """沿用备份中的 short_id（目标站点未占用时）与创建 / 更新时间"""
        short_id = str(meta.get('short_id') or '').strip()
        if _SHORT_ID_RE.match(short_id) and \
                Content.query.filter_by(site_id=site.id, short_id=short_id).first() is None:
            content.short_id = short_id
        created_at = to_datetime(meta.get('created_at'))
        if created_at is not None:
            content.created_at = created_at
        updated_at = to_datetime(meta.get('updated_at'))
        if updated_at is not None:
            content.updated_at = updated_at

    @staticmethod
    def restore_site(site, import_path) -> RestoreReport:
        if not os.path.isdir(import_path):
            raise NotFound(f'恢复目录不存在: {import_path}')

        report = RestoreReport()
        resolver = EntityResolver(site, report)
        images = {}
        rich = os.path.isdir(os.path.join(import_path, META_DIR))
        if rich:
            report.mode = MODE_RICH
            images = RestoreService.restore_meta(site, import_path, report, resolver)

        content_root = os.path.join(import_path, CONTENT_DIR)
        if not os.path.isdir(content_root):
            content_root = import_path

        created = {}  # 备份中的 short_id -> 新建的 Content
        for path in iter_markdown_files(content_root):
            try:
                with open(path, encoding='utf-8') as fh:
                    meta, body = frontmatter.parse(fh.read(), source=path)
                content = Content(site_id=site.id)
                RestoreService.restore_identity(site, content, meta)
                apply_frontmatter(content, meta, body, resolver, filename=path)
                db.session.add(content)
                db.session.flush()
                if meta.get('short_id'):
                    created[str(meta['short_id'])] = content
                report.contents_created += 1
            except (SyncError, OSError, UnicodeDecodeError) as e:
                message = e.message if isinstance(e, SyncError) else str(e)
                report.errors.append({'item': path, 'error': message})

        if rich:
            RestoreService.restore_content_images(
                site, os.path.join(import_path, META_DIR), created, images, report)

        db.session.commit()
        current_app.logger.info(
            f'♻️ 站点 {site.slug} 恢复完成 ({report.mode}): {report.contents_created} 篇内容, '
            f'{len(report.errors)} 个错误')
        return report


restore_service = RestoreService()
