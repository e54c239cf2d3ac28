import subprocess
from datetime import datetime, timedelta
import pytest
from folio import create_app
from folio.extensions import db as _db
from folio.models import Content, Contributor
from folio.services.settings_service import SettingsService
from folio.services.site_service import SiteService
from tests.helpers import get_section, get_tag


@pytest.fixture
def app(tmp_path):
    app = create_app(
        'testing',
        WORKSPACE_PATH=str(tmp_path / 'workspace'),
        PROFILES_PATH=str(tmp_path / 'profiles'),
        IMPORT_BASE_PATH=str(tmp_path / 'imports'),
    )
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def site(app):
    return SiteService.create_site('blog', 'Field Notes')


@pytest.fixture
def settings(site):
    def apply(**values):
        for key, value in values.items():
            SettingsService.set(site, key, value)
        _db.session.commit()
    return apply


@pytest.fixture
def make_content(site):
    """创建已发布内容的工厂，published 为距今的小时数"""
    def factory(heading, section=None, tags=(), published=1, contributor=None, **kwargs):
        kwargs.setdefault('draft', False)
        kwargs.setdefault('body', f'# {heading}\n\nBody of {heading}.')
        content = Content(site_id=site.id, heading=heading, **kwargs)
        if published is not None:
            content.published_at = datetime.utcnow() - timedelta(hours=published)
        if section is not None:
            content.section = get_section(site, section)
        content.tags = [get_tag(site, name) for name in tags]
        if contributor is not None:
            content.contributor = contributor
        _db.session.add(content)
        _db.session.commit()
        return content
    return factory


@pytest.fixture
def make_contributor(site):
    def factory(handle, **kwargs):
        contributor = Contributor(site_id=site.id, handle=handle, **kwargs)
        _db.session.add(contributor)
        _db.session.commit()
        return contributor
    return factory


@pytest.fixture
def bare_repo(tmp_path):
    """本地裸仓库作为远端"""
    path = tmp_path / 'remote.git'
    subprocess.run(['git', 'init', '--bare', str(path)], check=True, capture_output=True)
    return str(path)

