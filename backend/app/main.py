"""
RBAC Admin 主应用入口
组织机构、菜单、角色、用户管理与行级数据权限
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import SessionLocal, init_db
from app.routers import auth
from app.system.routers import menu_router, org_router, rbac_router
from core.security.errors import PermissionDenied

logger = logging.getLogger(__name__)


def init_logging(level: str = None) -> None:
    """按配置设置 app / core 日志级别"""
    level = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    for name in ("app", "core"):
        logging.getLogger(name).setLevel(level)


def init_permission_provider(app: FastAPI, session_factory=SessionLocal):
    """创建权限提供者并挂到 app.state"""
    from app.system.services.permission_provider import RBACPermissionProvider
    provider = RBACPermissionProvider(session_factory)
    app.state.permission_provider = provider
    return provider


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时执行
    init_logging()

    # 初始化数据库
    init_db()

    # ========== RBAC: 权限提供者 ==========
    if getattr(app.state, "permission_provider", None) is None:
        init_permission_provider(app)
        logger.info("RBAC PermissionProvider 已注册")

    # ========== 种子数据 ==========
    if settings.SEED_ON_STARTUP:
        from app.system.services.seed import seed_system_data
        seed_db = SessionLocal()
        try:
            stats = seed_system_data(seed_db)
            if any(stats.values()):
                logger.info(f"系统种子数据已初始化: {stats}")
        finally:
            seed_db.close()

    yield


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    description="组织机构 / 菜单 / 角色 / 用户管理与行级数据权限",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


# 注册路由
app.include_router(auth.router)
app.include_router(rbac_router.role_router)
app.include_router(rbac_router.user_router)
app.include_router(menu_router.router)
app.include_router(org_router.dept_router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
