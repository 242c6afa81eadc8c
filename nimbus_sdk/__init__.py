# NimbusFlags/nimbus_sdk/__init__.py
"""NimbusFlags server SDK.

Evaluates feature toggles locally against a repository that a background
thread keeps in sync with the NimbusFlags server.
"""

from .config import SDK_VERSION as __version__
from .config import Config
from .errors import NimbusError
from .repositories.models import Repository, Toggle, load_json
from .services.client_service import Detail, NimbusClient
from .services.evaluator import EvalDetail
from .services.events import AccessEvent, EventSink
from .services.sync_service import SyncType
from .user import User

__all__ = [
    "AccessEvent",
    "Config",
    "Detail",
    "EvalDetail",
    "EventSink",
    "NimbusClient",
    "NimbusError",
    "Repository",
    "SyncType",
    "Toggle",
    "User",
    "__version__",
    "load_json",
]
