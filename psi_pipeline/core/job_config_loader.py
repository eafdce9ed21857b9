from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from psi_pipeline.config import get_settings
from psi_pipeline.core.job_config_models import JobConfig

logger = logging.getLogger(__name__)


class JobConfigError(Exception):
    """
    业务配置缺失或未通过 schema 校验；启动阶段视为致命错误。
    """


def _format_validation_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_job_config(raw: Any) -> JobConfig:
    """
    校验已解析的配置对象（dict），失败时抛出 JobConfigError。
    """
    try:
        cfg = JobConfig.model_validate(raw)
    except ValidationError as exc:
        raise JobConfigError(
            f"Error(s) in configuration file: {_format_validation_errors(exc)}"
        ) from exc

    logger.info("Configuration validated successfully")
    return cfg


def load_job_config(config_path: Optional[str] = None) -> JobConfig:
    """
    从 config.json（或 .yml/.yaml）加载并校验业务配置。
    """

    path = Path(config_path or get_settings().JOB_CONFIG_PATH)
    if not path.exists():
        raise JobConfigError(f"Job config not found at {path}")

    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yml", ".yaml"):
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise JobConfigError(f"Job config at {path} is not parseable: {exc}") from exc

    cfg = parse_job_config(raw)
    logger.info("Loaded job config from %s, sources=%s", path, cfg.source_ids)
    return cfg
