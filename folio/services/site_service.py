"""站点 / 栏目的基础维护"""
import os
from flask import current_app
from folio.extensions import db
from folio.exceptions import NotFound, FolioException
from folio.models import Site, Section, Content
from folio.services.settings_service import SettingsService
from folio.utils import workspace


class SiteService:

    @staticmethod
    def get_by_slug(slug):
        site = Site.query.filter_by(slug=slug).first()
        if site is None:
            raise NotFound(f'站点不存在: {slug}', payload={'slug': slug})
        return site

    @staticmethod
    def create_site(slug, name, description=''):
        """创建站点：根栏目 + 默认设置 + 工作区目录"""
        if Site.query.filter_by(slug=slug).first():
            raise FolioException(f'站点 slug 已存在: {slug}', code=409)
        site = Site(slug=slug, name=name, description=description)
        db.session.add(site)
        db.session.flush()

        db.session.add(Section(site_id=site.id, name=Section.ROOT_NAME, path=''))
        SettingsService.seed_defaults(site)
        db.session.commit()

        for path in (workspace.html_dir(site), workspace.markdown_dir(site), workspace.images_dir(site)):
            os.makedirs(path, exist_ok=True)
        current_app.logger.info(f'🌐 站点已创建: {site.slug}')
        return site

    @staticmethod
    def delete_site(site):
        """删除站点及其下属实体；已生成的文件保留在磁盘上"""
        slug = site.slug
        db.session.delete(site)
        db.session.commit()
        current_app.logger.info(f'🗑️ 站点已删除: {slug}（输出文件未删除）')

    @staticmethod
    def get_section(site, path):
        path = Section.normalize_path(path)
        return Section.query.filter_by(site_id=site.id, path=path).first()

    @staticmethod
    def create_section(site, name, path, layout=None):
        section = Section(site_id=site.id, name=name, path=Section.normalize_path(path),
                          layout_id=layout.id if layout else None)
        db.session.add(section)
        db.session.flush()
        return section

    @staticmethod
    def delete_section(section):
        """删除栏目，其内容保留但不再归属任何栏目"""
        Content.query.filter_by(section_id=section.id).update({'section_id': None})
        db.session.delete(section)
        db.session.commit()


site_service = SiteService()
