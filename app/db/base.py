# app/db/base.py
from __future__ import annotations

import importlib
import logging
from typing import Iterable

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("courier_sync.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


MODEL_MODULES = (
    "app.models.order",
    "app.models.logistics_comment",
    "app.models.order_timeline",
)

_INITIALIZED: bool = False  # 防重复初始化


def init_models(*, extra_modules: Iterable[str] | None = None, force: bool = False) -> None:
    """
    集中导入模型并固化映射：
      1) 导入 MODEL_MODULES（+ extra_modules），保证表都注册到 Base.metadata
      2) configure_mappers()
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    modules = list(MODEL_MODULES) + list(extra_modules or [])
    for mod in modules:
        importlib.import_module(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized (%d modules)", len(modules))
