"""
Holarchy - holon graph with trust signatures, plus offline-first page sync.
"""

from .graph import Holarchy
from .inference import classify
from .sync import SyncReconciler
from .trust import TrustLedger

try:
    from importlib.metadata import version

    __version__ = version("holarchy")
except Exception:
    __version__ = "0.0.0"

__all__ = ["Holarchy", "TrustLedger", "SyncReconciler", "classify"]
