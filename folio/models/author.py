import json
from folio.extensions import db
from .base import BaseModel


class SocialLinksMixin:
    """social_links 以 JSON 文本保存"""

    @property
    def social_links_map(self):
        if not self.social_links:
            return {}
        try:
            return json.loads(self.social_links)
        except ValueError:
            return {}

    @social_links_map.setter
    def social_links_map(self, value):
        self.social_links = json.dumps(value or {}, ensure_ascii=False, sort_keys=True)


class Profile(SocialLinksMixin, BaseModel):
    """作者公开页资料"""
    __tablename__ = 'profiles'

    slug = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(64), default='')
    surname = db.Column(db.String(64), default='')
    bio = db.Column(db.Text, default='')
    social_links = db.Column(db.Text, default='{}')
    photo_path = db.Column(db.String(512), default='')


class Contributor(SocialLinksMixin, BaseModel):
    """贡献者：站点内的署名记录，可关联一个 Profile"""
    __tablename__ = 'contributors'
    __table_args__ = (db.UniqueConstraint('site_id', 'handle', name='uq_contributor_site_handle'),)

    site_id = db.Column(db.Integer, db.ForeignKey('sites.id'), nullable=False, index=True)
    profile_id = db.Column(db.Integer, db.ForeignKey('profiles.id'))
    handle = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(64), default='')
    surname = db.Column(db.String(64), default='')
    bio = db.Column(db.Text, default='')
    social_links = db.Column(db.Text, default='{}')
    photo_path = db.Column(db.String(512), default='')

    profile = db.relationship('Profile', backref=db.backref('contributors', lazy='dynamic'))

    @property
    def full_name(self):
        return ' '.join(p for p in (self.name, self.surname) if p)
