"""系列导航与基于标签的相关内容"""
from dataclasses import dataclass, field
from typing import Any, List, Optional

DEFAULT_MAX_ITEMS = 5


@dataclass
class Relations:
    related: List[Any] = field(default_factory=list)
    prev: Optional[Any] = None
    next: Optional[Any] = None
    backward: List[Any] = field(default_factory=list)
    forward: List[Any] = field(default_factory=list)


def series_navigation(content, candidates):
    """
    系列模式：同名系列按 series_order 升序（相同时按发布时间），
    backward 为 [0, i)，forward 为 (i, end]。
    candidates 应为站点内全部可发布内容。
    """
    members = [c for c in candidates if c.series == content.series]
    if content not in members:
        members.append(content)
    members = sorted(members, key=lambda c: (c.series_order or 0, c.sort_key))
    i = members.index(content)
    return Relations(
        prev=members[i - 1] if i > 0 else None,
        next=members[i + 1] if i + 1 < len(members) else None,
        backward=members[:i],
        forward=members[i + 1:],
    )


def related_contents(content, candidates, max_items=DEFAULT_MAX_ITEMS, multi_section=True):
    """
    相关模式：与当前内容至少共享一个标签的其他可发布内容。
    按共享标签数降序、发布时间降序排序，最后保持输入顺序，结果确定。
    """
    own_tags = {t.name for t in content.tags}
    if not own_tags or max_items <= 0:
        return []

    scored = []
    for other in candidates:
        if other is content or (other.id is not None and other.id == content.id):
            continue
        if not multi_section and other.section_id != content.section_id:
            continue
        shared = len(own_tags & {t.name for t in other.tags})
        if shared:
            scored.append((shared, other))

    # sort 是稳定的：先按时间降序，再按共享数降序，相同者保持输入顺序
    scored.sort(key=lambda s: s[1].sort_key, reverse=True)
    scored.sort(key=lambda s: s[0], reverse=True)
    return [s[1] for s in scored[:max_items]]


def compute_relations(content, candidates, enabled=True, max_items=DEFAULT_MAX_ITEMS, multi_section=True):
    """按是否有系列名选择两种互斥的计算方式"""
    if not enabled:
        return Relations()
    if (content.series or '').strip():
        return series_navigation(content, candidates)
    return Relations(related=related_contents(content, candidates, max_items, multi_section))
