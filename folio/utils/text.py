import re
from datetime import datetime, timedelta, timezone

_SLUG_RE = re.compile(r'[^a-z0-9]+')
_DURATION_RE = re.compile(r'(\d+)\s*([hms]?)')


def slugify(value):
    """小写化，非字母数字替换为 '-'，去掉首尾 '-'"""
    return _SLUG_RE.sub('-', (value or '').lower()).strip('-')


def as_bool(value, default=False):
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def as_int(value, default=0):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_duration(value, default=None):
    """
    解析 '15m' / '1h' / '90s' / '1h30m' 形式的时长，纯数字视为分钟。
    无法解析时返回 default。
    """
    if value is None:
        return default
    text = str(value).strip().lower()
    if not text:
        return default
    if text.isdigit():
        return timedelta(minutes=int(text))
    matches = _DURATION_RE.findall(text)
    if not matches or _DURATION_RE.sub('', text).strip():
        return default
    total = timedelta()
    for amount, unit in matches:
        amount = int(amount)
        if unit == 'h':
            total += timedelta(hours=amount)
        elif unit == 's':
            total += timedelta(seconds=amount)
        else:
            total += timedelta(minutes=amount)
    return total


def to_datetime(value):
    """把 YAML 中的时间值统一为 naive UTC datetime"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def normalize_base_path(path):
    """保证以 '/' 开头和结尾"""
    path = (path or '/').strip()
    if not path.startswith('/'):
        path = '/' + path
    if not path.endswith('/'):
        path += '/'
    return path
