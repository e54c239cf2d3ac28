"""
Markdown 导出服务（备份）
把站点的全部内容（包括草稿）与元数据导出为目录树：

    content/<section-path>/<slug>.md
    meta/{layouts.yml, layouts/<name>.html, layouts/<name>.css,
          sections.yml, contributors.yml, tags.yml, images.yml, content_images.yml}
    images/<section-path>/<file>
    profiles/<handle>.<ext>
"""
import os
import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List
import yaml
from flask import current_app
from folio.models import Content, Layout, Section, Contributor, Tag, Image, ContentImage
from folio.utils import frontmatter, workspace
from folio.utils.file_helper import clean_dir, copy_file, write_text, get_file_extension, safe_name
from folio.utils.locks import site_locks

DEFAULT_SECTION_DIR = 'posts'
META_DIR = 'meta'
CONTENT_DIR = 'content'


@dataclass
class ExportReport:
    content_exported: int = 0
    images_copied: int = 0
    profiles_copied: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        return {
            'content_exported': self.content_exported,
            'images_copied': self.images_copied,
            'profiles_copied': self.profiles_copied,
            'errors': list(self.errors),
        }


def layout_stem(name):
    """布局文件名；secure_filename 清空时用名称摘要"""
    return safe_name(name, 'layout-' + hashlib.md5(name.encode('utf-8')).hexdigest()[:8])


def profile_stem(handle):
    """头像文件名；导出与恢复共用，只由 handle 决定"""
    return safe_name(handle, 'contributor-' + hashlib.md5(handle.encode('utf-8')).hexdigest()[:8])


def _iso(value):
    return value.isoformat() if value else None


def _dump_yaml(path, data):
    write_text(path, yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False))


class ExportService:
    """Markdown 导出服务"""

    @staticmethod
    def build_frontmatter(content: Content) -> Dict[str, Any]:
        """
        生成单篇内容的 frontmatter

        Returns:
            有序字典，键顺序即写入文件的顺序
        """
        header = content.header_image
        return {
            'title': content.heading,
            'slug': content.slug,
            'short_id': content.short_id,
            'section': content.section_path,
            'draft': bool(content.draft),
            'featured': bool(content.featured),
            'kind': content.kind,
            'series': content.series or '',
            'series_order': content.series_order or 0,
            'author': content.author_username or '',
            'contributor': content.contributor.handle if content.contributor else '',
            'tags': [t.name for t in content.tags],
            'summary': content.summary or '',
            'image': header.file_path if header else '',
            'description': content.description or '',
            'keywords': content.keywords or '',
            'robots': content.robots or '',
            'canonical-url': content.canonical_url or '',
            'published_at': _iso(content.published_at),
            'created_at': _iso(content.created_at),
            'updated_at': _iso(content.updated_at),
        }

    @staticmethod
    def content_relpath(content):
        directory = content.section_path or DEFAULT_SECTION_DIR
        return os.path.join(CONTENT_DIR, directory, f'{content.slug}.md')

    @staticmethod
    def export_contents(site, target, report):
        contents = Content.query.filter_by(site_id=site.id).order_by(Content.created_at).all()
        for content in contents:
            try:
                text = frontmatter.dump(ExportService.build_frontmatter(content), content.body)
                write_text(os.path.join(target, ExportService.content_relpath(content)), text)
                report.content_exported += 1
            except Exception as e:
                current_app.logger.warning(f'⚠️ 导出失败 {content.short_id}: {e}')
                report.errors.append({'item': content.short_id, 'heading': content.heading, 'error': str(e)})

    @staticmethod
    def export_meta(site, target):
        """写入 meta/ 下的元数据文件"""
        meta = os.path.join(target, META_DIR)

        layouts = Layout.query.filter_by(site_id=site.id).order_by(Layout.name).all()
        _dump_yaml(os.path.join(meta, 'layouts.yml'), [
            {'name': l.name, 'description': l.description or '', 'exclude_default_css': bool(l.exclude_default_css),
             'default': l.id == site.default_layout_id}
            for l in layouts
        ])
        for layout in layouts:
            name = layout_stem(layout.name)
            write_text(os.path.join(meta, 'layouts', f'{name}.html'), layout.code or '')
            write_text(os.path.join(meta, 'layouts', f'{name}.css'), layout.css or '')

        sections = Section.query.filter_by(site_id=site.id).order_by(Section.path).all()
        _dump_yaml(os.path.join(meta, 'sections.yml'), [
            {'name': s.name, 'path': s.path, 'description': s.description or '',
             'layout': s.layout.name if s.layout else '',
             'header_image': s.header_image.file_path if s.header_image else ''}
            for s in sections
        ])

        contributors = Contributor.query.filter_by(site_id=site.id).order_by(Contributor.handle).all()
        _dump_yaml(os.path.join(meta, 'contributors.yml'), [
            {'handle': c.handle, 'name': c.name or '', 'surname': c.surname or '', 'bio': c.bio or '',
             'photo_path': c.photo_path or (c.profile.photo_path if c.profile else ''),
             'social_links': c.social_links_map}
            for c in contributors
        ])

        tags = Tag.query.filter_by(site_id=site.id).order_by(Tag.name).all()
        _dump_yaml(os.path.join(meta, 'tags.yml'), [{'name': t.name, 'slug': t.slug} for t in tags])

        images = Image.query.filter_by(site_id=site.id).order_by(Image.file_path).all()
        _dump_yaml(os.path.join(meta, 'images.yml'), {
            i.file_path: {'path': i.file_path, 'file_name': i.file_name or '', 'alt': i.alt_text or '',
                          'title': i.title or '', 'caption': i.caption or '',
                          'attribution': i.attribution or '', 'attribution_url': i.attribution_url or ''}
            for i in images
        })

        links = ContentImage.query.join(Content).filter(Content.site_id == site.id) \
            .order_by(Content.short_id, ContentImage.order_num).all()
        grouped = {}
        for link in links:
            grouped.setdefault(link.content.short_id, []).append({
                'image_path': link.image.file_path,
                'is_header': bool(link.is_header),
                'is_featured': bool(link.is_featured),
                'order_num': link.order_num or 0,
            })
        _dump_yaml(os.path.join(meta, 'content_images.yml'), grouped)
        return images, contributors

    @staticmethod
    def copy_images(site, images, target, report):
        source_root = workspace.images_dir(site)
        for image in images:
            source = os.path.join(source_root, image.file_path)
            if not os.path.isfile(source):
                report.errors.append({'item': f'image:{image.file_path}', 'error': '图片文件不存在'})
                continue
            copy_file(source, os.path.join(target, 'images', image.file_path))
            report.images_copied += 1

    @staticmethod
    def copy_profiles(contributors, target, report):
        root = workspace.profiles_dir()
        for contributor in contributors:
            photo = contributor.photo_path or (contributor.profile.photo_path if contributor.profile else '')
            if not photo:
                continue
            source = photo if os.path.isabs(photo) else os.path.join(root, photo)
            ext = get_file_extension(photo)
            if not os.path.isfile(source) or not ext:
                report.errors.append({'item': f'profile:{contributor.handle}', 'error': '头像文件不存在'})
                continue
            name = profile_stem(contributor.handle)
            copy_file(source, os.path.join(target, 'profiles', f'{name}.{ext}'))
            report.profiles_copied += 1

    @staticmethod
    def export_site(site, target=None) -> ExportReport:
        """
        全量导出（纯投影，不依赖上次导出的状态）。
        目标目录先清空，单篇失败记录后继续。
        """
        target = target or workspace.markdown_dir(site)
        report = ExportReport()
        with site_locks.slot(site.id):
            clean_dir(target, keep=('.git',))
            ExportService.export_contents(site, target, report)
            images, contributors = ExportService.export_meta(site, target)
            ExportService.copy_images(site, images, target, report)
            ExportService.copy_profiles(contributors, target, report)
        current_app.logger.info(
            f'📦 站点 {site.slug} 导出完成: {report.content_exported} 篇内容, '
            f'{report.images_copied} 张图片, {len(report.errors)} 个错误')
        return report


export_service = ExportService()
