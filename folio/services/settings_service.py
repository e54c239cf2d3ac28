"""站点设置服务"""
from datetime import timedelta
from folio.extensions import db
from folio.models import Setting
from folio.utils.text import as_bool, as_int, parse_duration, normalize_base_path


class Keys:
    """程序内使用的设置 ref_key"""
    BASE_PATH = 'ssg.site.base_path'
    BASE_URL = 'ssg.site.base_url'
    DESCRIPTION = 'ssg.site.description'
    INDEX_MAX_ITEMS = 'ssg.index.maxitems'
    BLOCKS_ENABLED = 'ssg.blocks.enabled'
    BLOCKS_MAX_ITEMS = 'ssg.blocks.maxitems'
    BLOCKS_MULTI_SECTION = 'ssg.blocks.multisection'
    SEARCH_ENABLED = 'ssg.search.google.enabled'
    SEARCH_ID = 'ssg.search.google.id'
    ROBOTS_TXT = 'ssg.robots.txt'
    SCHEDULE_ENABLED = 'ssg.scheduled.publish.enabled'
    SCHEDULE_INTERVAL = 'ssg.scheduled.publish.interval'
    PUBLISH_REPO_URL = 'ssg.publish.repo.url'
    PUBLISH_BRANCH = 'ssg.publish.branch'
    PUBLISH_TOKEN = 'ssg.publish.auth.token'
    BACKUP_REPO_URL = 'ssg.backup.repo.url'
    BACKUP_BRANCH = 'ssg.backup.branch'
    BACKUP_TOKEN = 'ssg.backup.auth.token'
    COMMIT_USER_NAME = 'ssg.git.commit.user.name'
    COMMIT_USER_EMAIL = 'ssg.git.commit.user.email'


# (ref_key, 显示名, 默认值, 类型, 分类)
DEFAULTS = [
    (Keys.BASE_PATH, 'Base path', '/', 'string', 'site'),
    (Keys.BASE_URL, 'Base URL', '', 'string', 'site'),
    (Keys.DESCRIPTION, 'Site description', '', 'text', 'site'),
    (Keys.INDEX_MAX_ITEMS, 'Index page size', '9', 'int', 'index'),
    (Keys.BLOCKS_ENABLED, 'Related blocks enabled', 'true', 'bool', 'blocks'),
    (Keys.BLOCKS_MAX_ITEMS, 'Related blocks size', '5', 'int', 'blocks'),
    (Keys.BLOCKS_MULTI_SECTION, 'Related across sections', 'true', 'bool', 'blocks'),
    (Keys.SEARCH_ENABLED, 'Search enabled', 'false', 'bool', 'search'),
    (Keys.SEARCH_ID, 'Search engine id', '', 'string', 'search'),
    (Keys.ROBOTS_TXT, 'robots.txt', '', 'text', 'seo'),
    (Keys.SCHEDULE_ENABLED, 'Scheduled publishing', 'false', 'bool', 'schedule'),
    (Keys.SCHEDULE_INTERVAL, 'Scheduled publishing interval', '15m', 'string', 'schedule'),
    (Keys.PUBLISH_REPO_URL, 'Publish repository URL', '', 'string', 'publish'),
    (Keys.PUBLISH_BRANCH, 'Publish branch', 'gh-pages', 'string', 'publish'),
    (Keys.PUBLISH_TOKEN, 'Publish auth token', '', 'secret', 'publish'),
    (Keys.BACKUP_REPO_URL, 'Backup repository URL', '', 'string', 'backup'),
    (Keys.BACKUP_BRANCH, 'Backup branch', 'main', 'string', 'backup'),
    (Keys.BACKUP_TOKEN, 'Backup auth token', '', 'secret', 'backup'),
    (Keys.COMMIT_USER_NAME, 'Commit author name', 'Folio Bot', 'string', 'git'),
    (Keys.COMMIT_USER_EMAIL, 'Commit author email', 'folio@localhost', 'string', 'git'),
]

DEFAULT_VALUES = {key: value for key, _, value, _, _ in DEFAULTS}


class SiteSettings:
    """站点设置的只读视图（ref_key -> value），缺失项使用默认值"""

    def __init__(self, values):
        self.values = dict(DEFAULT_VALUES)
        self.values.update({k: v for k, v in values.items() if v is not None})

    def get(self, key, default=''):
        value = self.values.get(key)
        return default if value is None else value

    def get_bool(self, key, default=False):
        return as_bool(self.values.get(key), default)

    def get_int(self, key, default=0):
        return as_int(self.values.get(key), default)

    @property
    def base_path(self):
        return normalize_base_path(self.get(Keys.BASE_PATH, '/'))

    @property
    def base_url(self):
        return self.get(Keys.BASE_URL).strip().rstrip('/')

    @property
    def index_page_size(self):
        size = self.get_int(Keys.INDEX_MAX_ITEMS, 9)
        return size if size > 0 else 9

    @property
    def schedule_interval(self):
        return parse_duration(self.get(Keys.SCHEDULE_INTERVAL), timedelta(minutes=15))

    def as_map(self):
        """传给模板的设置表，不包含凭据"""
        return {k: v for k, v in self.values.items() if not k.endswith('.auth.token')}


class SettingsService:
    """站点设置读写"""

    @staticmethod
    def seed_defaults(site):
        """为站点补齐缺失的系统设置"""
        existing = {s.ref_key for s in Setting.query.filter_by(site_id=site.id).all()}
        created = 0
        for position, (key, name, value, type_, category) in enumerate(DEFAULTS):
            if key in existing:
                continue
            db.session.add(Setting(
                site_id=site.id, name=name, value=value, type=type_, category=category,
                position=position, ref_key=key, system=True,
            ))
            created += 1
        db.session.flush()
        return created

    @staticmethod
    def load(site):
        rows = Setting.query.filter_by(site_id=site.id).all()
        return SiteSettings({(s.ref_key or s.name): s.value for s in rows})

    @staticmethod
    def set(site, key, value):
        setting = Setting.query.filter_by(site_id=site.id, ref_key=key).first()
        if setting is None:
            setting = Setting(site_id=site.id, name=key, ref_key=key, system=False)
            db.session.add(setting)
        setting.value = '' if value is None else str(value)
        db.session.flush()
        return setting


settings_service = SettingsService()
