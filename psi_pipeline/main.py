import asyncio
import logging
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from psi_pipeline.config import get_settings
from psi_pipeline.core.job_config_models import JobConfig

load_dotenv()

logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

from psi_pipeline.api.routes import router as api_router
from psi_pipeline.core.bootstrap import build_orchestrator
from psi_pipeline.core.job_config_loader import load_job_config


def create_app(job_config: Optional[JobConfig] = None) -> FastAPI:
    """
    创建 FastAPI 应用：校验业务配置、组装 orchestrator、挂载路由。

    配置校验失败时 JobConfigError 直接抛出，进程不会开始处理触发。
    """
    app = FastAPI(
        title="PageSpeed Insights Pipeline",
        version="0.1.0",
    )

    config = job_config or load_job_config()
    app.state.job_config = config
    app.state.orchestrator = build_orchestrator(config)

    app.include_router(api_router, prefix="/api")

    @app.get("/health", summary="健康检查")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()


def launch_pagespeed_insights(event: Dict[str, Any], context: Any = None) -> None:
    """
    Cloud Functions（Pub/Sub background function）入口。
    """
    _ = context
    asyncio.run(app.state.orchestrator.run(event.get("data") or ""))
