import os
import shutil
import hashlib
from datetime import datetime, timezone
from werkzeug.utils import secure_filename


def get_file_extension(filename):
    """从文件名获取扩展名"""
    if not filename or '.' not in os.path.basename(filename):
        return None
    return filename.rsplit('.', 1)[1].lower()


def safe_name(name, fallback='file'):
    """secure_filename 可能会清空中文字符，此时使用 fallback"""
    return secure_filename(name or '') or fallback


def file_sha256(path):
    """按块计算文件 sha256"""
    digest = hashlib.sha256()
    with open(path, 'rb') as fh:
        for chunk in iter(lambda: fh.read(65536), b''):
            digest.update(chunk)
    return digest.hexdigest()


def ensure_dir(path):
    if not os.path.exists(path):
        os.makedirs(path)
    return path


def clean_dir(path, keep=()):
    """清空目录内容，保留 keep 中列出的顶层条目（如 .git）"""
    ensure_dir(path)
    for entry in os.listdir(path):
        if entry in keep:
            continue
        full = os.path.join(path, entry)
        if os.path.isdir(full) and not os.path.islink(full):
            shutil.rmtree(full)
        else:
            os.remove(full)


def copy_tree(src, dst):
    """把 src 下的内容复制到 dst（覆盖同名文件），返回复制的文件数"""
    if not os.path.isdir(src):
        return 0
    ensure_dir(dst)
    count = 0
    for root, dirs, files in os.walk(src):
        rel = os.path.relpath(root, src)
        target_root = dst if rel == '.' else os.path.join(dst, rel)
        ensure_dir(target_root)
        for name in files:
            shutil.copy2(os.path.join(root, name), os.path.join(target_root, name))
            count += 1
    return count


def copy_file(src, dst):
    ensure_dir(os.path.dirname(dst))
    shutil.copy2(src, dst)


def write_text(path, text):
    ensure_dir(os.path.dirname(path))
    with open(path, 'w', encoding='utf-8') as fh:
        fh.write(text)


def swap_dir(staging, target):
    """用 staging 目录整体替换 target，旧目录先改名再删除"""
    old = None
    if os.path.exists(target):
        old = target + '.old'
        if os.path.exists(old):
            shutil.rmtree(old)
        os.rename(target, old)
    os.rename(staging, target)
    if old:
        shutil.rmtree(old, ignore_errors=True)


def file_mtime(path):
    """文件修改时间（naive UTC）"""
    return datetime.fromtimestamp(os.stat(path).st_mtime, timezone.utc).replace(tzinfo=None)
