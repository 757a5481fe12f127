"""
TV profile, remote command and discovery models

Profiles are owned by the caller's profile store; the core only reads them.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TVBrand(str, Enum):
    SAMSUNG = "samsung"
    LG = "lg"
    SONY = "sony"
    VIZIO = "vizio"
    ROKU = "roku"
    PHILIPS = "philips"
    PANASONIC = "panasonic"
    FIRETV = "firetv"
    TCL = "tcl"
    OTHER = "other"


class RemoteCommand(str, Enum):
    POWER = "power"
    INPUT = "input"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    OK = "ok"
    BACK = "back"
    HOME = "home"
    SETTINGS = "settings"
    VOLUME_UP = "volumeUp"
    VOLUME_DOWN = "volumeDown"
    CHANNEL_UP = "channelUp"
    CHANNEL_DOWN = "channelDown"
    MUTE = "mute"
    PREVIOUS = "previous"
    PLAY_PAUSE = "playPause"
    NEXT = "next"
    NUMPAD = "numpad"
    DIGIT_0 = "digit0"
    DIGIT_1 = "digit1"
    DIGIT_2 = "digit2"
    DIGIT_3 = "digit3"
    DIGIT_4 = "digit4"
    DIGIT_5 = "digit5"
    DIGIT_6 = "digit6"
    DIGIT_7 = "digit7"
    DIGIT_8 = "digit8"
    DIGIT_9 = "digit9"
    NUMPAD_BACKSPACE = "numpadBackspace"
    NUMPAD_ENTER = "numpadEnter"


class ProbeSource(str, Enum):
    """Which fingerprint probe recognised a host"""
    ROKU = "roku"
    SAMSUNG = "samsung"
    SONY = "sony"
    CHROMECAST = "chromecast"
    LG = "lg"
    VIZIO = "vizio"
    PHILIPS = "philips"
    PANASONIC = "panasonic"
    FIRETV = "firetv"
    BRIDGE = "bridge"


class TVProfile(BaseModel):
    """
    A saved TV

    brand and host identify the TV for credential caching; changing
    the host implicitly invalidates every cached credential.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    brand: TVBrand
    nickname: str = ""
    host: Optional[str] = None
    port: Optional[int] = None

    @property
    def credential_key(self) -> str:
        return f"{self.id}:{self.host or ''}"


class DiscoveredDevice(BaseModel):
    """A candidate TV found during a scan"""
    id: str
    brand: TVBrand
    nickname: str
    host: str
    port: int
    source: ProbeSource


def map_brand(label: str) -> TVBrand:
    """Guess a brand from a manufacturer/model label"""
    value = label.lower()
    if "samsung" in value:
        return TVBrand.SAMSUNG
    if "sony" in value or "bravia" in value:
        return TVBrand.SONY
    if "roku" in value:
        return TVBrand.ROKU
    if "panasonic" in value:
        return TVBrand.PANASONIC
    if "vizio" in value:
        return TVBrand.VIZIO
    if "tcl" in value:
        return TVBrand.TCL
    if "lg" in value or "webos" in value:
        return TVBrand.LG
    if "philips" in value:
        return TVBrand.PHILIPS
    if "amazon" in value or "fire tv" in value or "aft" in value:
        return TVBrand.FIRETV
    return TVBrand.OTHER
