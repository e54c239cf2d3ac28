from folio.extensions import db
from .base import BaseModel


class Site(BaseModel):
    """站点：独立的网站项目，拥有自己的内容、设置和生成输出"""
    __tablename__ = 'sites'

    slug = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, default='')
    active = db.Column(db.Boolean, default=True)

    # 站点默认布局（不建立外键约束，避免 sites <-> layouts 循环依赖）
    default_layout_id = db.Column(db.Integer)
    last_published_at = db.Column(db.DateTime)

    default_layout = db.relationship(
        'Layout', primaryjoin='foreign(Site.default_layout_id) == Layout.id',
        viewonly=True, uselist=False)

    # 删除站点时级联删除所有下属实体（磁盘上的生成文件不动）
    sections = db.relationship('Section', backref='site', cascade='all, delete-orphan')
    layouts = db.relationship('Layout', backref='site', cascade='all, delete-orphan')
    contents = db.relationship('Content', backref='site', cascade='all, delete-orphan')
    tags = db.relationship('Tag', backref='site', cascade='all, delete-orphan')
    contributors = db.relationship('Contributor', backref='site', cascade='all, delete-orphan')
    settings = db.relationship('Setting', backref='site', cascade='all, delete-orphan')
    images = db.relationship('Image', backref='site', cascade='all, delete-orphan')
    import_records = db.relationship('ImportRecord', backref='site',
                                     cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Site {self.slug}>'


class Section(BaseModel):
    """栏目：拥有自己的 URL 路径和可选的布局覆盖"""
    __tablename__ = 'sections'
    __table_args__ = (db.UniqueConstraint('site_id', 'path', name='uq_section_site_path'),)

    ROOT_NAME = 'main'

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, default='')
    path = db.Column(db.String(128), default='')  # 根栏目为空字符串
    layout_id = db.Column(db.Integer, db.ForeignKey('layouts.id'))
    header_image_id = db.Column(db.Integer, db.ForeignKey('images.id'))

    layout = db.relationship('Layout')
    header_image = db.relationship('Image')
    # 删除栏目时内容保留，section_id 置空
    contents = db.relationship('Content', backref='section')

    @staticmethod
    def normalize_path(path):
        return (path or '').strip().strip('/')

    @property
    def is_root(self):
        return not self.path


class Layout(BaseModel):
    """布局：模板源码 + 自定义样式"""
    __tablename__ = 'layouts'
    __table_args__ = (db.UniqueConstraint('site_id', 'name', name='uq_layout_site_name'),)

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, default='')
    code = db.Column(db.Text, default='')  # Jinja2 模板源码
    css = db.Column(db.Text, default='')
    exclude_default_css = db.Column(db.Boolean, default=False)


class Setting(BaseModel):
    """站点级键值设置，ref_key 用于程序内查找"""
    __tablename__ = 'settings'
    __table_args__ = (db.UniqueConstraint('site_id', 'name', name='uq_setting_site_name'),)

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Text, default='')
    type = db.Column(db.String(16), default='string')  # string, bool, int, text, secret
    category = db.Column(db.String(32), default='ssg')
    position = db.Column(db.Integer, default=0)
    ref_key = db.Column(db.String(128), index=True)
    system = db.Column(db.Boolean, default=False)
