import os
import calendar
import shutil
import pytest
from folio.extensions import db
from folio.models import Section, Tag
from folio.services.site_service import SiteService

requires_git = pytest.mark.skipif(shutil.which('git') is None, reason='git binary not available')


def get_section(site, path, name=None):
    section = Section.query.filter_by(site_id=site.id, path=path).first()
    if section is None:
        section = SiteService.create_section(site, name or path.title(), path)
    return section


def get_tag(site, name):
    tag = Tag.query.filter_by(site_id=site.id, name=name).first()
    if tag is None:
        tag = Tag(site_id=site.id, name=name, slug=name.lower())
        db.session.add(tag)
    return tag


def set_mtime(path, when):
    """把 naive UTC datetime 设为文件修改时间"""
    stamp = calendar.timegm(when.timetuple()) + when.microsecond / 1e6
    os.utime(path, (stamp, stamp))


def html_path(app, site, *parts):
    return os.path.join(app.config['WORKSPACE_PATH'], 'sites', site.slug, 'html', *parts)


def read(path):
    with open(path, encoding='utf-8') as fh:
        return fh.read()
