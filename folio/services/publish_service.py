"""
版本库发布服务
- publish：生成站点后推送 html 输出
- backup：导出 Markdown 后推送备份
- plan：预演，只列出将要推送的变更
三者共用同一套克隆与暂存流程，只是源目录与配置不同
"""
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List
from datetime import datetime
from flask import current_app
from folio.extensions import db
from folio.exceptions import ConfigError, NotFound, PublishError
from folio.services.settings_service import SettingsService, Keys
from folio.services.generation_service import GenerationService
from folio.services.export_service import ExportService
from folio.utils import workspace
from folio.utils.file_helper import clean_dir, copy_tree, ensure_dir
from folio.utils.git import GitClient, GitCommandError, ExecutionContext, commit_url, parse_status, status_paths
from folio.utils.locks import site_locks

PURPOSE_PUBLISH = 'publish'
PURPOSE_BACKUP = 'backup'

STATUS_PUBLISHED = 'published'
STATUS_BACKED_UP = 'backed_up'
STATUS_NO_CHANGES = 'no_changes'


@dataclass
class PublishConfig:
    """每次操作时从设置推导，不持久化"""
    purpose: str
    repo_url: str
    branch: str
    token: str
    user_name: str
    user_email: str

    @property
    def auth_method(self):
        if self.token and self.repo_url.lower().startswith('https://'):
            return 'token'
        return 'ssh'

    @classmethod
    def from_settings(cls, site, purpose):
        settings = SettingsService.load(site)
        if purpose == PURPOSE_BACKUP:
            url_key, branch_key, token_key, default_branch = \
                Keys.BACKUP_REPO_URL, Keys.BACKUP_BRANCH, Keys.BACKUP_TOKEN, 'main'
        else:
            url_key, branch_key, token_key, default_branch = \
                Keys.PUBLISH_REPO_URL, Keys.PUBLISH_BRANCH, Keys.PUBLISH_TOKEN, 'gh-pages'

        repo_url = settings.get(url_key).strip()
        if not repo_url:
            raise ConfigError(f'未配置仓库地址: {url_key}', payload={'key': url_key, 'purpose': purpose})
        return cls(
            purpose=purpose,
            repo_url=repo_url,
            branch=settings.get(branch_key).strip() or default_branch,
            token=settings.get(token_key).strip(),
            user_name=settings.get(Keys.COMMIT_USER_NAME).strip() or 'Folio Bot',
            user_email=settings.get(Keys.COMMIT_USER_EMAIL).strip() or 'folio@localhost',
        )


@dataclass
class PublishResult:
    status: str
    commit_hash: str = ''
    commit_url: str = ''
    added: int = 0
    modified: int = 0
    deleted: int = 0

    def to_dict(self):
        return {
            'status': self.status,
            'commit_hash': self.commit_hash,
            'commit_url': self.commit_url,
            'added': self.added,
            'modified': self.modified,
            'deleted': self.deleted,
        }


@dataclass
class PlanResult:
    """发布预演：推送时会产生的变更，不提交"""
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def summary(self):
        return f'Added: {len(self.added)}, Modified: {len(self.modified)}, Deleted: {len(self.deleted)}'

    def to_dict(self):
        return {
            'added': list(self.added),
            'modified': list(self.modified),
            'deleted': list(self.deleted),
            'summary': self.summary,
        }


class PublishService:
    """发布与备份"""

    @staticmethod
    @contextmanager
    def staged_clone(site, source_dir, cfg: PublishConfig, context=None):
        """
        每次操作都在临时目录中重新克隆远端，远端分支是唯一的基准；
        上次失败留下的本地提交不会影响这次的变更判断。
        yield (git, porcelain 状态)，退出时删除临时目录。
        """
        if not os.path.isdir(source_dir):
            raise NotFound(f'源目录不存在: {source_dir}', payload={'purpose': cfg.purpose})
        parent = workspace.repos_dir(site)
        ensure_dir(parent)
        token = cfg.token if cfg.auth_method == 'token' else None

        with tempfile.TemporaryDirectory(prefix=f'{cfg.purpose}-', dir=parent) as tmp:
            workdir = os.path.join(tmp, 'repo')
            git = GitClient(workdir, timeout=current_app.config.get('GIT_TIMEOUT', 300), context=context)
            try:
                git.clone(cfg.repo_url, token=token)
                git.ensure_branch(cfg.branch)
                clean_dir(workdir, keep=('.git',))
                copy_tree(source_dir, workdir)
                git.add('.')
                changes = git.status()
            except GitCommandError as e:
                raise PublishService.publish_error(site, cfg, e)
            yield git, changes

    @staticmethod
    def publish_error(site, cfg, e):
        current_app.logger.error(f'❌ 站点 {site.slug} {cfg.purpose} 失败: {e.output}')
        return PublishError(e.output, purpose=cfg.purpose,
                            payload={'command': e.command, 'returncode': e.returncode})

    @staticmethod
    def push_tree(site, source_dir, cfg: PublishConfig, context=None) -> PublishResult:
        """
        把 source_dir 同步到远端分支。
        没有变化时不提交也不推送。
        """
        token = cfg.token if cfg.auth_method == 'token' else None
        label = 'Deploy' if cfg.purpose == PURPOSE_PUBLISH else 'Backup'

        with PublishService.staged_clone(site, source_dir, cfg, context) as (git, changes):
            if not changes.strip():
                current_app.logger.info(f'ℹ️ 站点 {site.slug} {cfg.purpose}: 没有变化')
                return PublishResult(status=STATUS_NO_CHANGES)
            added, modified, deleted = parse_status(changes)

            try:
                message = f'{label} site - {datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")}'
                git.commit(message, cfg.user_name, cfg.user_email)
                commit_hash = git.log('%H')
                git.push(cfg.repo_url, cfg.branch, token=token)
            except GitCommandError as e:
                raise PublishService.publish_error(site, cfg, e)

        status = STATUS_PUBLISHED if cfg.purpose == PURPOSE_PUBLISH else STATUS_BACKED_UP
        current_app.logger.info(f'🚀 站点 {site.slug} {cfg.purpose} 完成: {commit_hash[:8]} '
                                f'(+{added} ~{modified} -{deleted})')
        return PublishResult(
            status=status,
            commit_hash=commit_hash,
            commit_url=commit_url(cfg.repo_url, commit_hash),
            added=added,
            modified=modified,
            deleted=deleted,
        )

    @staticmethod
    def publish(site, context: ExecutionContext = None, now=None) -> PublishResult:
        """
        生成并发布站点。
        成功后（包括没有变化）推进 last_published_at，手动与定时发布走同一流程。
        """
        cfg = PublishConfig.from_settings(site, PURPOSE_PUBLISH)
        with site_locks.slot(site.id):
            report = GenerationService.generate(site, now=now)
            if report.errors:
                current_app.logger.warning(f'⚠️ 站点 {site.slug} 生成时有 {len(report.errors)} 个页面失败')
            result = PublishService.push_tree(site, workspace.html_dir(site), cfg, context)
            site.last_published_at = datetime.utcnow()
            db.session.commit()
        return result

    @staticmethod
    def backup(site, context: ExecutionContext = None) -> PublishResult:
        """导出 Markdown 并推送到备份仓库"""
        cfg = PublishConfig.from_settings(site, PURPOSE_BACKUP)
        with site_locks.slot(site.id):
            ExportService.export_site(site)
            return PublishService.push_tree(site, workspace.markdown_dir(site), cfg, context)

    @staticmethod
    def plan(site, purpose=PURPOSE_PUBLISH, context: ExecutionContext = None) -> PlanResult:
        """
        预演发布 / 备份：重新生成（或导出）后列出将要推送的变更。
        不提交、不推送，也不推进 last_published_at。
        """
        cfg = PublishConfig.from_settings(site, purpose)
        with site_locks.slot(site.id):
            if purpose == PURPOSE_BACKUP:
                ExportService.export_site(site)
                source = workspace.markdown_dir(site)
            else:
                GenerationService.generate(site)
                source = workspace.html_dir(site)
            with PublishService.staged_clone(site, source, cfg, context) as (_, changes):
                added, modified, deleted = status_paths(changes)
        plan = PlanResult(added=added, modified=modified, deleted=deleted)
        current_app.logger.info(f'📋 站点 {site.slug} {purpose} 预演: {plan.summary}')
        return plan


publish_service = PublishService()
