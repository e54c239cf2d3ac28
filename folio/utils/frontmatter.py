"""YAML frontmatter 解析与生成"""
import os
import re
import yaml
from folio.exceptions import SyncError

DELIMITER = '---'
_H1_RE = re.compile(r'^#\s+(.+?)\s*#*\s*$', re.MULTILINE)


def parse(text, source=None):
    """
    拆分 frontmatter 与正文。
    只有以 '---\\n' 开头的文件才有 frontmatter；未闭合的块视为没有 frontmatter。
    YAML 语法错误抛出 SyncError。
    """
    text = text.replace('\r\n', '\n')
    if not text.startswith(DELIMITER + '\n'):
        return {}, text

    rest = text[len(DELIMITER) + 1:]
    end = re.search(r'^---[ \t]*$', rest, re.MULTILINE)
    if end is None:
        return {}, text

    raw = rest[:end.start()]
    body = rest[end.end():].lstrip('\n')
    try:
        meta = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise SyncError(f'frontmatter 解析失败: {e}', payload={'file': source})
    if not isinstance(meta, dict):
        raise SyncError('frontmatter 必须是键值映射', payload={'file': source})
    return meta, body


def dump(meta, body):
    """生成 '---\\n{yaml}---\\n\\n{body}' 格式的文件内容"""
    header = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f'{DELIMITER}\n{header}{DELIMITER}\n\n{body or ""}'


def extract_title(meta, body, filename=None):
    """标题回退顺序：frontmatter title -> 正文第一个一级标题 -> 文件名"""
    title = meta.get('title') if meta else None
    if title:
        return str(title).strip()
    match = _H1_RE.search(body or '')
    if match:
        return match.group(1).strip()
    if filename:
        name = os.path.basename(filename)
        return name[:-3] if name.lower().endswith('.md') else name
    return ''


def as_list(value):
    """tags 可写成列表或逗号分隔字符串"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [v.strip() for v in str(value).split(',') if v.strip()]
