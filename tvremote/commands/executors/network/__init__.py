"""Network TV Executors"""

from .samsung import SamsungExecutor
from .lg_webos import LGWebOSExecutor
from .sony_bravia import SonyBraviaExecutor
from .vizio import VizioExecutor
from .panasonic import PanasonicExecutor
from .philips import PhilipsExecutor
from .roku import RokuExecutor
from .fire_tv import FireTVExecutor
from .bridge import BridgeExecutor

__all__ = [
    "SamsungExecutor",
    "LGWebOSExecutor",
    "SonyBraviaExecutor",
    "VizioExecutor",
    "PanasonicExecutor",
    "PhilipsExecutor",
    "RokuExecutor",
    "FireTVExecutor",
    "BridgeExecutor"
]
