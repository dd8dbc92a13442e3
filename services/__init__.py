from .config import HybridJoinConfig
from .hybrid_join_service import HybridJoinService

__all__ = ['HybridJoinConfig', 'HybridJoinService']
