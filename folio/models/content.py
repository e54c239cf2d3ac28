import uuid
from datetime import datetime
from folio.extensions import db
from folio.utils.text import slugify
from .base import BaseModel

# 内容-标签 多对多关联表
content_tags = db.Table(
    'content_tags',
    db.Column('content_id', db.Integer, db.ForeignKey('contents.id'), primary_key=True),
    db.Column('tag_id', db.Integer, db.ForeignKey('tags.id'), primary_key=True)
)


def new_short_id():
    return uuid.uuid4().hex[:8]


class Content(BaseModel):
    """内容：页面 / 文章 / 系列"""
    __tablename__ = 'contents'

    KIND_PAGE = 'page'
    KIND_ARTICLE = 'article'
    KIND_SERIES = 'series'
    KINDS = (KIND_PAGE, KIND_ARTICLE, KIND_SERIES)

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey('sections.id'), index=True)
    contributor_id = db.Column(db.Integer, db.ForeignKey('contributors.id'), index=True)
    author_username = db.Column(db.String(64), default='')  # 无贡献者时的作者回退

    short_id = db.Column(db.String(16), default=new_short_id, index=True)
    kind = db.Column(db.String(16), default=KIND_ARTICLE)
    heading = db.Column(db.String(256), nullable=False, default='')
    summary = db.Column(db.Text, default='')
    body = db.Column(db.Text, default='')  # Markdown 原文
    draft = db.Column(db.Boolean, default=True)
    featured = db.Column(db.Boolean, default=False)
    series = db.Column(db.String(128), default='')
    series_order = db.Column(db.Integer, default=0)
    published_at = db.Column(db.DateTime, index=True)

    # SEO
    description = db.Column(db.Text, default='')
    keywords = db.Column(db.String(256), default='')
    robots = db.Column(db.String(64), default='')
    canonical_url = db.Column(db.String(512), default='')

    contributor = db.relationship('Contributor', backref='contents')
    tags = db.relationship('Tag', secondary=content_tags, backref='contents',
                           order_by='Tag.name')
    images = db.relationship('ContentImage', backref='content', cascade='all, delete-orphan',
                             order_by='ContentImage.order_num')

    @property
    def slug(self):
        """slugify(标题) + '-' + short_id，保证同名文章不冲突"""
        base = slugify(self.heading)
        if not base:
            return self.short_id
        return f'{base}-{self.short_id}'

    @property
    def section_path(self):
        return self.section.path if self.section else ''

    @property
    def display_handle(self):
        if self.contributor is not None:
            return self.contributor.handle
        return self.author_username or ''

    @property
    def sort_key(self):
        # 没有发布时间的内容以创建时间排序
        return self.published_at or self.created_at or datetime.min

    @property
    def header_image(self):
        for link in self.images:
            if link.is_header:
                return link.image
        return None

    def is_publishable(self, now=None):
        now = now or datetime.utcnow()
        if self.draft:
            return False
        return self.published_at is None or self.published_at <= now

    def __repr__(self):
        return f'<Content {self.short_id} {self.heading!r}>'


class Tag(BaseModel):
    """标签"""
    __tablename__ = 'tags'
    __table_args__ = (db.UniqueConstraint('site_id', 'name', name='uq_tag_site_name'),)

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    slug = db.Column(db.String(64), nullable=False)


class Image(BaseModel):
    """站点图片（文件保存在工作区 images/ 下，file_path 为相对路径）"""
    __tablename__ = 'images'

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    file_name = db.Column(db.String(256))
    file_path = db.Column(db.String(512), index=True)
    alt_text = db.Column(db.String(256), default='')
    title = db.Column(db.String(256), default='')
    caption = db.Column(db.Text, default='')
    attribution = db.Column(db.String(256), default='')
    attribution_url = db.Column(db.String(512), default='')

    links = db.relationship('ContentImage', backref='image', cascade='all, delete-orphan')


class ContentImage(BaseModel):
    """内容与图片的关联"""
    __tablename__ = 'content_images'

    content_id = db.Column(db.Integer, db.ForeignKey('contents.id'), nullable=False, index=True)
    image_id = db.Column(db.Integer, db.ForeignKey('images.id'), nullable=False, index=True)
    is_header = db.Column(db.Boolean, default=False)
    is_featured = db.Column(db.Boolean, default=False)
    order_num = db.Column(db.Integer, default=0)
