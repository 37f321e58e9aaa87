"""
统一导出 ORM 模型（物流对账主线）。
"""

from importlib import import_module


def _export(module_name: str, class_name: str) -> None:
    module = import_module(module_name)
    globals()[class_name] = getattr(module, class_name)


MODEL_SPECS = [
    # -------- 订单 --------
    ("app.models.order", "Order"),
    ("app.models.order_timeline", "OrderTimelineEntry"),
    # -------- 物流留言 --------
    ("app.models.logistics_comment", "LogisticsComment"),
]

for _module, _name in MODEL_SPECS:
    _export(_module, _name)

__all__ = [name for _, name in MODEL_SPECS]
