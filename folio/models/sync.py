from folio.extensions import db
from .base import BaseModel


class ImportRecord(BaseModel):
    """外部 Markdown 文件的导入追踪记录，每个 (site, path) 一条"""
    __tablename__ = 'import_records'
    __table_args__ = (db.UniqueConstraint('site_id', 'file_path', name='uq_import_site_path'),)

    STATUS_NEW = 'new'
    STATUS_SYNCED = 'synced'
    STATUS_CONFLICT = 'conflict'
    STATUS_REIMPORT = 'reimport-available'
    STATUS_MISSING = 'missing'

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    file_path = db.Column(db.String(1024), nullable=False)  # 绝对路径
    file_hash = db.Column(db.String(64))
    file_mtime = db.Column(db.DateTime)
    content_id = db.Column(db.Integer, db.ForeignKey('contents.id', ondelete='SET NULL'), index=True)
    status = db.Column(db.String(32), default=STATUS_SYNCED)
    imported_at = db.Column(db.DateTime)

    # 内容被删除时 content_id 置空
    content = db.relationship('Content', backref='import_records')
