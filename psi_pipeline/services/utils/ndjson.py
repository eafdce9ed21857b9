from __future__ import annotations

import json
from typing import Any


def to_ndjson(data: Any) -> str:
    """
    转成 newline-delimited JSON：每条记录一行紧凑 JSON，末尾带换行。
    非 list 输入视为单条记录。
    """
    items = data if isinstance(data, list) else [data]
    return "".join(
        json.dumps(item, separators=(",", ":"), ensure_ascii=False) + "\n" for item in items
    )
