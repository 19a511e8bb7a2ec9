"""
FastAPI主应用入口
"""
import asyncio
import logging
import uuid
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.database import engine, Base, AsyncSessionLocal
from app.api.v1 import api_router
from app.core.logging import setup_logging
from app.core.health import check_db, check_redis
from app.initial_data import seed_plans

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时执行
    setup_logging()
    # 创建数据库表
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if settings.SEED_ON_STARTUP:
        async with AsyncSessionLocal() as db:
            await seed_plans(db)

    yield

    # 关闭时执行
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="订阅结账演示：套餐浏览、模拟支付、订阅管理",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip压缩
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """为每个请求生成或透传 X-Request-ID，并写入 request.state"""
    rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = rid
    response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    return response


def _error_response(detail: str, request_id: str | None = None) -> dict:
    body = {"detail": detail}
    if request_id:
        body["request_id"] = request_id
    return body


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """统一 HTTP 异常响应格式"""
    rid = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_response(
            detail=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
            request_id=rid,
        ),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求体格式错误按 400 返回"""
    rid = getattr(request.state, "request_id", None)
    errs = exc.errors()
    message = errs[0].get("msg", "Invalid request") if errs else "Invalid request"
    body = {"error": message, "errors": [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errs
    ]}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """未捕获异常统一格式，不暴露内部细节"""
    rid = getattr(request.state, "request_id", None)
    logger.error("未捕获异常 request_id=%s", rid, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=_error_response(detail="Internal server error", request_id=rid),
    )


# 注册路由
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"{settings.PROJECT_NAME} API",
        "version": settings.VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """健康检查：返回各依赖连通状态"""
    db_ok, db_msg = await check_db()
    redis_ok, redis_msg = await asyncio.to_thread(check_redis)
    all_ok = db_ok and redis_ok
    return JSONResponse(
        content={
            "status": "healthy" if all_ok else "degraded",
            "service": "paymentflow-api",
            "dependencies": {
                "database": {"ok": db_ok, "message": db_msg},
                "redis": {"ok": redis_ok, "message": redis_msg},
            },
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
