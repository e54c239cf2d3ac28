"""
定时发布调度器
进程内只有一个后台循环；每次唤醒为每个有到期内容的站点派发一个独立任务，
任务在执行前获取该站点的执行槽，与手动发布串行
"""
import threading
from contextlib import nullcontext
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from flask import current_app, has_app_context
from folio.extensions import db
from folio.models import Site, Content
from folio.services.settings_service import SettingsService, Keys
from folio.services.publish_service import PublishService
from folio.utils.locks import site_locks

MIN_INTERVAL = timedelta(minutes=1)
DEFAULT_INTERVAL = timedelta(minutes=15)

OUTCOME_PUBLISHED = 'published'
OUTCOME_NOT_DUE = 'not_due'
OUTCOME_FAILED = 'failed'


def clamp_interval(interval):
    if interval is None:
        return DEFAULT_INTERVAL
    return max(interval, MIN_INTERVAL)


def due_contents_query(site, now=None):
    """非草稿、发布时间已过、且晚于站点上次发布时间的内容"""
    now = now or datetime.utcnow()
    query = Content.query.filter(
        Content.site_id == site.id,
        Content.draft.is_(False),
        Content.published_at.isnot(None),
        Content.published_at <= now,
    )
    if site.last_published_at is not None:
        query = query.filter(Content.published_at > site.last_published_at)
    return query


def has_due_content(site, now=None):
    return due_contents_query(site, now).first() is not None


class PublishScheduler:
    """后台定时发布循环"""

    def __init__(self, app=None, publisher=None):
        self.app = app
        self.publisher = publisher or PublishService.publish
        self._stop = threading.Event()
        self._thread = None

    def init_app(self, app):
        self.app = app
        app.extensions['folio_scheduler'] = self

    def app_context(self):
        """已在本应用上下文中时复用当前会话，否则（工作线程）推入新的上下文"""
        if has_app_context() and current_app._get_current_object() is self.app:
            return nullcontext()
        return self.app.app_context()

    def enabled_sites(self):
        sites = Site.query.filter_by(active=True).order_by(Site.id).all()
        return [s for s in sites if SettingsService.load(s).get_bool(Keys.SCHEDULE_ENABLED)]

    def interval(self):
        """启用站点中最小的间隔，没有则用进程默认值，最少 1 分钟"""
        default = timedelta(minutes=self.app.config.get('SCHEDULER_INTERVAL', 15))
        intervals = [SettingsService.load(s).schedule_interval for s in self.enabled_sites()]
        intervals = [i for i in intervals if i is not None]
        return clamp_interval(min(intervals) if intervals else default)

    def run_site(self, site_id, now=None):
        """单个站点任务：获取执行槽后再检查到期内容，避免与手动发布重复"""
        with self.app_context():
            site = db.session.get(Site, site_id)
            if site is None:
                return OUTCOME_NOT_DUE
            try:
                with site_locks.slot(site.id):
                    if not has_due_content(site, now):
                        return OUTCOME_NOT_DUE
                    current_app.logger.info(f'⏰ 站点 {site.slug} 有到期内容，开始定时发布')
                    self.publisher(site)
                    return OUTCOME_PUBLISHED
            except Exception as e:
                # 失败不推进 last_published_at，下次唤醒重试
                db.session.rollback()
                current_app.logger.error(f'❌ 站点 {site.slug} 定时发布失败: {e}')
                return OUTCOME_FAILED

    def run_tick(self, now=None):
        """
        执行一次调度

        Returns:
            {site_slug: outcome}
        """
        with self.app_context():
            sites = [(s.id, s.slug) for s in self.enabled_sites() if has_due_content(s, now)]
        if not sites:
            return {}

        workers = max(1, self.app.config.get('SCHEDULER_WORKERS', 4))
        if workers == 1 or len(sites) == 1:
            return {slug: self.run_site(site_id, now) for site_id, slug in sites}

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='folio-publish') as pool:
            futures = {slug: pool.submit(self.run_site, site_id, now) for site_id, slug in sites}
            return {slug: future.result() for slug, future in futures.items()}

    # ------------------------------------------------------------------
    def _loop(self):
        while not self._stop.is_set():
            with self.app.app_context():
                wait = self.interval()
            if self._stop.wait(wait.total_seconds()):
                break
            try:
                outcomes = self.run_tick()
                if outcomes:
                    self.app.logger.info(f'⏰ 调度完成: {outcomes}')
            except Exception as e:
                self.app.logger.error(f'❌ 调度循环异常: {e}')

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name='folio-scheduler', daemon=True)
        self._thread.start()
        self.app.logger.info('⏰ 定时发布调度器已启动')

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


scheduler = PublishScheduler()
