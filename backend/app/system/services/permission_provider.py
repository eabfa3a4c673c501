"""
RBACPermissionProvider — IPermissionProvider 的 app 层实现

通过 PermissionService 查询数据库，带内存缓存。
实例在应用启动时创建并挂在 app.state 上；角色、菜单、授权或用户角色变更后，
由对应的管理接口同步调用 invalidate_user / invalidate_all。

每个用户有一个失效代数，invalidate_* 时递增。refresh 聚合前记下代数，
写回缓存时若代数已变（聚合期间发生了失效），结果只返回给本次调用，不进缓存。
"""
import logging
import threading
from typing import Dict, Tuple

from core.security.context import Principal
from core.security.permission import IPermissionProvider, PermissionSet
from app.system.services.permission_service import PermissionService

logger = logging.getLogger(__name__)


class RBACPermissionProvider(IPermissionProvider):
    """基于数据库的 RBAC 权限提供者"""

    def __init__(self, db_session_factory):
        """
        Args:
            db_session_factory: callable that returns a new DB session
        """
        self._db_session_factory = db_session_factory
        self._cache: Dict[int, PermissionSet] = {}
        self._generations: Dict[int, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    def _generation(self, user_id: int) -> Tuple[int, int]:
        return self._epoch, self._generations.get(user_id, 0)

    def get_permission_set(self, principal: Principal) -> PermissionSet:
        with self._lock:
            cached = self._cache.get(principal.id)
        if cached is not None:
            return cached
        return self.refresh(principal)

    def refresh(self, principal: Principal) -> PermissionSet:
        with self._lock:
            generation = self._generation(principal.id)
        db = self._db_session_factory()
        try:
            permissions, role_keys = PermissionService(db).aggregate(principal)
        finally:
            db.close()
        perm_set = PermissionSet(frozenset(permissions), frozenset(role_keys))
        with self._lock:
            if self._generation(principal.id) == generation:
                self._cache[principal.id] = perm_set
            else:
                logger.debug(f"Permission cache for user {principal.id} invalidated during refresh, not stored")
        return perm_set

    def invalidate_user(self, user_id: int) -> None:
        """清除单个用户的缓存（其角色或授权变更提交后调用）"""
        with self._lock:
            self._cache.pop(user_id, None)
            self._generations[user_id] = self._generations.get(user_id, 0) + 1
        logger.debug(f"Permission cache invalidated for user {user_id}")

    def invalidate_all(self) -> None:
        """清除全部缓存（菜单权限标识等影响多个用户的变更后调用）"""
        with self._lock:
            self._cache.clear()
            self._epoch += 1
        logger.debug("Permission cache cleared")

    def cached_user_ids(self):
        with self._lock:
            return set(self._cache)
