"""站点级互斥执行槽"""
import threading
from contextlib import contextmanager
from folio.exceptions import SiteBusy


class SiteLocks:
    """
    以站点 id 为键的锁注册表。
    生成 / 发布 / 备份在执行前获取对应站点的锁，不同站点互不影响。
    使用 RLock：发布流程持有锁时可以在同一线程内调用生成。
    """

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def _get(self, site_id):
        with self._guard:
            lock = self._locks.get(site_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[site_id] = lock
            return lock

    @contextmanager
    def slot(self, site_id, blocking=True, timeout=-1):
        lock = self._get(site_id)
        if not lock.acquire(blocking, timeout if blocking else -1):
            raise SiteBusy(f'站点 {site_id} 正在执行其他任务', payload={'site_id': site_id})
        try:
            yield
        finally:
            lock.release()


site_locks = SiteLocks()
