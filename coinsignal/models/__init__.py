from coinsignal.models.base import Base
from coinsignal.models.scan import ScanRecord

__all__ = [
    "Base",
    "ScanRecord",
]
