"""
git 子进程封装
只提供发布流程需要的最小原语：clone / checkout / add / commit / push / status / log
"""
import os
import re
import threading
import subprocess
import time
from urllib.parse import urlsplit, urlunsplit
from flask import current_app
from folio.exceptions import OperationCancelled

_SCP_RE = re.compile(r'^(?:[\w.-]+@)?([\w.-]+):(?!//)(.+)$')


class GitCommandError(Exception):
    """git 返回非零状态，output 为原始 stderr/stdout"""
    def __init__(self, command, returncode, output):
        super().__init__(output or f'git {command} exited with {returncode}')
        self.command = command
        self.returncode = returncode
        self.output = output


class ExecutionContext:
    """可取消、带截止时间的执行上下文，由触发请求传入"""

    def __init__(self, timeout=None, cancel_event=None):
        self.deadline = time.monotonic() + timeout if timeout else None
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self):
        self.cancel_event.set()

    @property
    def cancelled(self):
        return self.cancel_event.is_set()

    def remaining(self):
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0)

    def check(self):
        if self.cancelled:
            raise OperationCancelled('操作已取消')
        if self.deadline is not None and self.remaining() <= 0:
            raise OperationCancelled('操作超时')


def authenticated_url(url, token):
    """
    https 地址 + token 时返回嵌入凭据的地址，只用于单次子进程调用，不落盘。
    其他情况原样返回（依赖宿主机的 SSH 密钥）。
    """
    if not token or not url.lower().startswith('https://'):
        return url
    parts = urlsplit(url)
    host = parts.netloc.rsplit('@', 1)[-1]
    return urlunsplit((parts.scheme, f'oauth2:{token}@{host}', parts.path, parts.query, parts.fragment))


def redact(text, secret):
    if secret and text:
        return text.replace(secret, '***')
    return text


def commit_url(repo_url, commit_hash):
    """尽力推导提交页面地址，无法推导时返回空字符串"""
    if not repo_url or not commit_hash:
        return ''
    url = repo_url.strip()
    if url.endswith('.git'):
        url = url[:-4]
    url = url.rstrip('/')

    if url.startswith(('https://', 'http://', 'ssh://')):
        parts = urlsplit(url)
        host = parts.hostname or ''
        if not host:
            return ''
        return f'https://{host}{parts.path}/commit/{commit_hash}'

    match = _SCP_RE.match(url)
    if match and '/' not in match.group(1):
        return f'https://{match.group(1)}/{match.group(2).lstrip("/")}/commit/{commit_hash}'
    return ''


def status_paths(porcelain):
    """
    按变更类型列出 `git status --porcelain` 中的路径
    返回: (added, modified, deleted)，重命名记为新路径的修改
    """
    added, modified, deleted = [], [], []
    for line in (porcelain or '').splitlines():
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:].strip()
        if ' -> ' in path:
            path = path.split(' -> ', 1)[1]
        if code == '??' or code[0] == 'A':
            added.append(path)
        elif 'D' in code:
            deleted.append(path)
        elif code[0] in 'MRC' or code[1] == 'M':
            modified.append(path)
    return added, modified, deleted


def parse_status(porcelain):
    """统计变更数量: (added, modified, deleted)"""
    return tuple(len(paths) for paths in status_paths(porcelain))


class GitClient:
    """针对单个本地工作副本执行 git 命令"""

    def __init__(self, workdir, timeout=300, context=None):
        self.workdir = workdir
        self.timeout = timeout
        self.context = context or ExecutionContext()

    def _run(self, args, cwd=None, secret=None):
        self.context.check()
        timeout = self.timeout
        remaining = self.context.remaining()
        if remaining is not None:
            timeout = min(timeout, remaining) if timeout else remaining

        env = dict(os.environ)
        # 禁止交互式凭据提示
        env['GIT_TERMINAL_PROMPT'] = '0'
        printable = redact(' '.join(args), secret)
        current_app.logger.debug(f'git {printable}')
        try:
            proc = subprocess.run(
                ['git'] + list(args),
                cwd=cwd or self.workdir,
                capture_output=True,
                text=True,
                env=env,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise GitCommandError(printable, -1, f'git {printable} timed out after {timeout}s')

        if proc.returncode != 0:
            output = (proc.stderr or proc.stdout or '').strip()
            raise GitCommandError(printable, proc.returncode, redact(output, secret))
        return proc.stdout

    def is_repo(self):
        return os.path.isdir(os.path.join(self.workdir, '.git'))

    def clone(self, url, token=None):
        """克隆到 workdir，随后把 origin 重置为不含凭据的地址"""
        parent = os.path.dirname(self.workdir.rstrip(os.sep))
        if not os.path.exists(parent):
            os.makedirs(parent)
        self._run(['clone', authenticated_url(url, token), self.workdir], cwd=parent, secret=token)
        if token:
            self.set_remote_url('origin', url)

    def set_remote_url(self, name, url):
        self._run(['remote', 'set-url', name, url])

    def checkout(self, branch, create=False):
        args = ['checkout', '-b', branch] if create else ['checkout', branch]
        self._run(args)

    def ensure_branch(self, branch):
        """切换到分支，不存在时创建"""
        try:
            self.checkout(branch)
        except GitCommandError:
            self.checkout(branch, create=True)

    def add(self, path='.'):
        self._run(['add', '-A', path])

    def status(self):
        return self._run(['status', '--porcelain'])

    def commit(self, message, user_name, user_email):
        self._run(['-c', f'user.name={user_name}', '-c', f'user.email={user_email}',
                   'commit', '-m', message])

    def log(self, fmt='%H', count=1):
        return self._run(['log', f'-{count}', f'--format={fmt}']).strip()

    def push(self, url, branch, token=None, force=True):
        args = ['push']
        if force:
            args.append('--force')
        args += [authenticated_url(url, token), f'{branch}:{branch}']
        self._run(args, secret=token)
