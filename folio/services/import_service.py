"""外部 Markdown 导入服务 - 扫描、导入、重新导入与冲突检测"""
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from flask import current_app
from folio.extensions import db
from folio.exceptions import NotFound, ReimportConflict, SyncError
from folio.models import Content, ImportRecord
from folio.utils import frontmatter, workspace
from folio.utils.file_helper import file_sha256, file_mtime
from .restore_service import EntityResolver, apply_frontmatter, iter_markdown_files


def compute_status(record_exists, file_exists=True, file_mtime=None, imported_at=None, content_updated_at=None):
    """
    计算导入状态

    | 条件 | 结果 |
    | 没有导入记录 | new |
    | 记录存在但文件已不在磁盘 | missing |
    | fmt <= importedAt | synced |
    | fmt > importedAt 且内容在导入后和文件修改后都被编辑过 | conflict |
    | 其他 fmt > importedAt 的情况 | reimport-available |
    """
    if not record_exists:
        return ImportRecord.STATUS_NEW
    if not file_exists:
        return ImportRecord.STATUS_MISSING
    if imported_at is not None and file_mtime is not None and file_mtime <= imported_at:
        return ImportRecord.STATUS_SYNCED
    if (imported_at is not None and content_updated_at is not None
            and content_updated_at > imported_at and content_updated_at > file_mtime):
        return ImportRecord.STATUS_CONFLICT
    return ImportRecord.STATUS_REIMPORT


def record_status(record, file_exists=True, mtime=None):
    content = record.content if record is not None else None
    return compute_status(
        record is not None, file_exists, mtime,
        record.imported_at if record is not None else None,
        content.updated_at if content is not None else None,
    )


@dataclass
class ImportFileStatus:
    path: str
    status: str
    title: str = ''
    file_hash: str = ''
    file_mtime: Optional[datetime] = None
    imported_at: Optional[datetime] = None
    record_id: Optional[int] = None
    content_id: Optional[int] = None
    error: str = ''

    def to_dict(self):
        return {
            'path': self.path,
            'status': self.status,
            'title': self.title,
            'file_hash': self.file_hash,
            'file_mtime': self.file_mtime.isoformat() if self.file_mtime else None,
            'imported_at': self.imported_at.isoformat() if self.imported_at else None,
            'record_id': self.record_id,
            'content_id': self.content_id,
            'error': self.error,
        }


@dataclass
class ImportResult:
    action: str  # created, updated, skipped
    status: str
    content: Any = None
    record: Any = None

    def to_dict(self):
        return {
            'action': self.action,
            'status': self.status,
            'content_id': self.content.id if self.content is not None else None,
            'short_id': self.content.short_id if self.content is not None else None,
            'record_id': self.record.id if self.record is not None else None,
        }


@dataclass
class ImportReport:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    conflicts: List[str] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        return {
            'created': self.created,
            'updated': self.updated,
            'skipped': self.skipped,
            'conflicts': list(self.conflicts),
            'errors': list(self.errors),
        }


class ImportService:
    """Markdown 导入服务"""

    @staticmethod
    def resolve_directory(site, directory=None):
        return os.path.abspath(os.path.expanduser(directory or workspace.import_dir(site)))

    @staticmethod
    def read_file(path):
        with open(path, encoding='utf-8') as fh:
            text = fh.read()
        meta, body = frontmatter.parse(text, source=path)
        return meta, body

    @staticmethod
    def scan(site, directory=None):
        """
        扫描目录中的 .md 文件并计算每个文件的状态。
        扫描中途消失的文件按 missing 处理；解析失败记录在条目的 error 中，不中断扫描。

        Returns:
            List[ImportFileStatus]
        """
        directory = ImportService.resolve_directory(site, directory)
        records = {r.file_path: r for r in ImportRecord.query.filter_by(site_id=site.id).all()}
        entries = []
        seen = set()

        files = iter_markdown_files(directory) if os.path.isdir(directory) else []
        for path in files:
            seen.add(path)
            record = records.get(path)
            try:
                mtime = file_mtime(path)
                digest = file_sha256(path)
            except FileNotFoundError:
                if record is not None:
                    entries.append(ImportFileStatus(path=path, status=ImportRecord.STATUS_MISSING,
                                                    record_id=record.id, content_id=record.content_id,
                                                    imported_at=record.imported_at))
                continue

            entry = ImportFileStatus(
                path=path,
                status=record_status(record, True, mtime),
                file_hash=digest,
                file_mtime=mtime,
                imported_at=record.imported_at if record else None,
                record_id=record.id if record else None,
                content_id=record.content_id if record else None,
            )
            try:
                meta, body = ImportService.read_file(path)
                entry.title = frontmatter.extract_title(meta, body, path)
            except SyncError as e:
                entry.error = e.message
            except (OSError, UnicodeDecodeError) as e:
                entry.error = str(e)
            entries.append(entry)

        prefix = directory.rstrip(os.sep) + os.sep
        for path, record in records.items():
            if path in seen or not path.startswith(prefix):
                continue
            if os.path.exists(path):
                # 目录外或隐藏目录下的文件，不属于本次扫描
                continue
            entries.append(ImportFileStatus(path=path, status=ImportRecord.STATUS_MISSING,
                                            record_id=record.id, content_id=record.content_id,
                                            imported_at=record.imported_at))

        for entry in entries:
            record = records.get(entry.path)
            if record is not None:
                record.status = entry.status
        db.session.commit()
        return entries

    @staticmethod
    def import_file(site, path, force=False) -> ImportResult:
        """
        导入单个文件：首次导入新建内容，之后原地更新关联内容（不重复创建）。
        conflict 状态必须 force=True 才会覆盖网页端的修改。
        """
        path = os.path.abspath(os.path.expanduser(path))
        if not os.path.isfile(path):
            raise NotFound(f'文件不存在: {path}', payload={'file': path})

        record = ImportRecord.query.filter_by(site_id=site.id, file_path=path).first()
        mtime = file_mtime(path)
        status = record_status(record, True, mtime)
        content = record.content if record is not None else None

        if status == ImportRecord.STATUS_CONFLICT and not force:
            raise ReimportConflict(
                f'文件与内容都在上次导入后被修改: {os.path.basename(path)}',
                payload={'file': path, 'status': status, 'content_id': content.id if content else None})
        if status == ImportRecord.STATUS_SYNCED and content is not None and not force:
            return ImportResult(action='skipped', status=status, content=content, record=record)

        meta, body = ImportService.read_file(path)
        digest = file_sha256(path)

        action = 'updated'
        if content is None:
            content = Content(site_id=site.id)
            db.session.add(content)
            action = 'created'

        apply_frontmatter(content, meta, body, EntityResolver(site), filename=path)
        now = datetime.utcnow()
        # 显式写入 updated_at，使其与 imported_at 一致，避免误判为网页端编辑
        content.updated_at = now
        db.session.flush()

        if record is None:
            record = ImportRecord(site_id=site.id, file_path=path)
            db.session.add(record)
        record.file_hash = digest
        record.file_mtime = mtime
        record.content_id = content.id
        record.status = ImportRecord.STATUS_SYNCED
        record.imported_at = now
        db.session.commit()

        current_app.logger.info(f'📥 导入 {os.path.basename(path)} -> {content.short_id} ({action})')
        return ImportResult(action=action, status=status, content=content, record=record)

    @staticmethod
    def import_directory(site, directory=None, force=False) -> ImportReport:
        """
        批量导入 new / reimport-available 状态的文件（force 时包含 conflict）。
        单个文件失败记录后继续。
        """
        report = ImportReport()
        importable = {ImportRecord.STATUS_NEW, ImportRecord.STATUS_REIMPORT}
        for entry in ImportService.scan(site, directory):
            if entry.status == ImportRecord.STATUS_CONFLICT and not force:
                report.conflicts.append(entry.path)
                continue
            if entry.status not in importable and entry.status != ImportRecord.STATUS_CONFLICT:
                report.skipped += 1
                continue
            if entry.error:
                report.errors.append({'file': entry.path, 'error': entry.error})
                continue
            try:
                result = ImportService.import_file(site, entry.path, force=force)
            except (SyncError, NotFound) as e:
                db.session.rollback()
                report.errors.append({'file': entry.path, 'error': e.message})
                continue
            if result.action == 'created':
                report.created += 1
            elif result.action == 'updated':
                report.updated += 1
            else:
                report.skipped += 1
        return report


import_service = ImportService()
