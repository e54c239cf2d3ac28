"""可发布内容筛选、排序与分页"""
import math
from datetime import datetime
from .context import Pagination

DEFAULT_PAGE_SIZE = 9


def publishable(contents, now=None):
    now = now or datetime.utcnow()
    return [c for c in contents if c.is_publishable(now)]


def order_newest_first(contents):
    """按发布时间倒序，没有发布时间的用创建时间；sorted 稳定，保留输入顺序"""
    return sorted(contents, key=lambda c: c.sort_key, reverse=True)


def page_url(base_path, section_path, page):
    """第 1 页为栏目根地址，第 N 页为 .../page/N/"""
    prefix = base_path if not section_path else f'{base_path}{section_path}/'
    if page <= 1:
        return prefix
    return f'{prefix}page/{page}/'


def page_output_path(section_path, page):
    """相对输出目录的文件路径"""
    parts = [section_path] if section_path else []
    if page > 1:
        parts += ['page', str(page)]
    parts.append('index.html')
    return '/'.join(parts)


def total_pages(count, page_size):
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    return max(1, math.ceil(count / page_size))


def paginate(contents, page_size=DEFAULT_PAGE_SIZE, page=1, base_path='/', section_path='',
             now=None, filtered=False):
    """
    返回指定页的 Pagination。
    页码从 1 开始，越界时夹到最近的有效页。
    filtered=True 表示 contents 已经过可发布筛选与排序。
    """
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    items = contents if filtered else order_newest_first(publishable(contents, now))
    pages = total_pages(len(items), page_size)
    page = min(max(1, page), pages)

    start = (page - 1) * page_size
    has_prev = page > 1
    has_next = page < pages
    return Pagination(
        current_page=page,
        total_pages=pages,
        has_prev=has_prev,
        has_next=has_next,
        prev_url=page_url(base_path, section_path, page - 1) if has_prev else '',
        next_url=page_url(base_path, section_path, page + 1) if has_next else '',
        items=items[start:start + page_size],
    )


def iter_pages(contents, page_size=DEFAULT_PAGE_SIZE, base_path='/', section_path='', now=None):
    """生成全部分页（至少一页）"""
    items = order_newest_first(publishable(contents, now))
    pages = total_pages(len(items), page_size)
    for number in range(1, pages + 1):
        yield paginate(items, page_size, number, base_path, section_path, filtered=True)
