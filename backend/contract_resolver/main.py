"""合同分析服务 - FastAPI主应用"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import ResponseValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .middleware import RequestLoggingMiddleware
from .routers import api_router
from .services.contract_resolution_service import get_contract_resolver
from .utils.logging_config import setup_logging

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    _ = app
    setup_logging(settings.log_level, settings.log_dir, settings.app_name)

    resolver = get_contract_resolver()
    logger.info(
        "合同分析服务启动 text_chain=%s image_chain=%s",
        ",".join(p.name for p in resolver.text_chain) or "-",
        ",".join(p.name for p in resolver.image_chain) or "-",
    )

    yield

    logger.info("应用关闭")


app = FastAPI(
    title=settings.app_name,
    description="""
# 合同分析 API

提交合同文本或合同图片，依次尝试配置的分析供应商，全部失败时由本地关键词分类器给出降级报告。

- `POST /api/contracts/review-text` 合同文本分析
- `POST /api/contracts/review-image` 合同图片分析（先 OCR 再分析）
- `GET /api/contracts/metrics` 供应商链运行指标
""",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "合同分析", "description": "合同文本/图片风险分析"},
    ],
)


@app.exception_handler(ResponseValidationError)
async def response_validation_exception_handler(request: Request, exc: ResponseValidationError):
    logger.exception("Response validation error path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": exc.errors() if settings.debug else "服务器错误"},
    )


app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """根路由"""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """健康检查"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("contract_resolver.main:app", host="0.0.0.0", port=8000, reload=True)
