# 按照依赖顺序导入
from .base import BaseModel
from .site import Site, Section, Layout, Setting
from .author import Profile, Contributor
from .content import Content, Tag, Image, ContentImage, content_tags
from .sync import ImportRecord
