from __future__ import annotations

from enum import Enum

"""Import selector enums.

ImportType はエンドポイント/CLI 引数の値と一致させる (customers|suppliers|items)。
"""

__all__ = [
    "ImportMode",
    "ImportType",
]


class ImportType(Enum):
    """Entity kind targeted by one import run."""
    CUSTOMERS = "customers"
    SUPPLIERS = "suppliers"
    ITEMS = "items"


class ImportMode(Enum):
    """Run mode.

    - PREVIEW: validate everything, write nothing (default)
    - IMPORT: validate, then insert surviving rows
    """
    PREVIEW = "preview"
    IMPORT = "import"
