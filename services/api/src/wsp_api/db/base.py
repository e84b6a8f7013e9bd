"""数据库基础模型导出。

仅提供 Base 定义并确保全部模型已注册到元数据，
不执行自动建表；生产环境的表结构由迁移脚本维护。
"""

import wsp_api.models  # noqa: F401
from wsp_api.models.base import Base

__all__ = ["Base"]
