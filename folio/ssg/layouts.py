"""布局解析与模板渲染"""
import os
from dataclasses import dataclass
from flask import current_app
from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape
from .context import PageKind

BUILTIN_LAYOUT = 'layout.html'
DEFAULT_CSS_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                                'static', 'ssg', 'main.css')

# 每种页面一个渲染入口
PARTIALS = {
    PageKind.INDEX: 'partials/index.html',
    PageKind.DETAIL: 'partials/detail.html',
    PageKind.AUTHOR: 'partials/author.html',
    PageKind.SEARCH: 'partials/search.html',
}


@dataclass
class ResolvedLayout:
    name: str
    source: str = ''   # 为空表示使用内置模板
    css: str = ''
    include_default_css: bool = True
    layout_id: int = None

    @property
    def builtin(self):
        return not self.source


def _usable(layout):
    return layout is not None and bool((layout.code or '').strip())


def resolve_layout(site, section=None):
    """
    布局解析顺序：栏目覆盖 -> 站点默认 -> 内置模板。
    总能得到一个可渲染的布局。
    """
    candidates = []
    if section is not None:
        candidates.append(section.layout)
    candidates.append(site.default_layout)

    for layout in candidates:
        if _usable(layout):
            return ResolvedLayout(
                name=layout.name,
                source=layout.code,
                css=layout.css or '',
                include_default_css=not layout.exclude_default_css,
                layout_id=layout.id,
            )
    return ResolvedLayout(name='builtin')


def default_css():
    with open(DEFAULT_CSS_PATH, encoding='utf-8') as fh:
        return fh.read()


class PageRenderer:
    """
    Jinja2 渲染器：内置模板从包内加载，自定义布局从数据库源码编译。
    自定义布局编译失败时回退到内置模板。
    """

    def __init__(self):
        self.env = Environment(
            loader=PackageLoader('folio', 'templates/ssg'),
            autoescape=select_autoescape(['html', 'xml'], default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._compiled = {}

    def template_for(self, layout):
        if layout.builtin:
            return self.env.get_template(BUILTIN_LAYOUT)

        key = (layout.layout_id, layout.name)
        if key not in self._compiled:
            try:
                self._compiled[key] = self.env.from_string(layout.source)
            except TemplateError as e:
                current_app.logger.warning(f'⚠️ 布局 {layout.name} 编译失败，使用内置模板: {e}')
                self._compiled[key] = None
        return self._compiled[key] or self.env.get_template(BUILTIN_LAYOUT)

    def render(self, page, layout):
        template = self.template_for(layout)
        return template.render(page=page, partial=PARTIALS[page.kind], PageKind=PageKind)
