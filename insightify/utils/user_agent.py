"""User agent classification for device, browser, and OS breakdowns."""

from dataclasses import dataclass

DEVICE_DESKTOP = "desktop"
DEVICE_MOBILE = "mobile"
DEVICE_TABLET = "tablet"

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ClientInfo:
    """Device, browser and OS derived from a user agent string."""

    device_type: str
    browser: str
    os: str


def detect_device_type(user_agent: str | None) -> str:
    """Classify a user agent as desktop, mobile or tablet."""
    if not user_agent:
        return DEVICE_DESKTOP
    # Tablets first: iPad and Android tablets also carry generic tokens
    if "iPad" in user_agent or "Tablet" in user_agent:
        return DEVICE_TABLET
    if "Android" in user_agent and "Mobile" not in user_agent:
        return DEVICE_TABLET
    if "Mobile" in user_agent or "iPhone" in user_agent or "Android" in user_agent:
        return DEVICE_MOBILE
    return DEVICE_DESKTOP


def detect_browser(user_agent: str | None) -> str:
    """Extract the browser family from a user agent."""
    if not user_agent:
        return UNKNOWN
    if "Edg" in user_agent:
        return "Edge"
    if "OPR" in user_agent or "Opera" in user_agent:
        return "Opera"
    if "Firefox" in user_agent or "FxiOS" in user_agent:
        return "Firefox"
    if "Chrome" in user_agent or "CriOS" in user_agent:
        return "Chrome"
    if "Safari" in user_agent:
        return "Safari"
    return UNKNOWN


def detect_os(user_agent: str | None) -> str:
    """Extract the operating system family from a user agent."""
    if not user_agent:
        return UNKNOWN
    # iOS user agents also contain "Mac OS X", Android ones contain "Linux"
    if "iPhone" in user_agent or "iPad" in user_agent or "iPod" in user_agent:
        return "iOS"
    if "Android" in user_agent:
        return "Android"
    if "Windows" in user_agent:
        return "Windows"
    if "Mac OS X" in user_agent or "Macintosh" in user_agent:
        return "macOS"
    if "CrOS" in user_agent:
        return "Chrome OS"
    if "Linux" in user_agent:
        return "Linux"
    return UNKNOWN


def parse_user_agent(user_agent: str | None) -> ClientInfo:
    """Parse a user agent string into device type, browser and OS."""
    return ClientInfo(
        device_type=detect_device_type(user_agent),
        browser=detect_browser(user_agent),
        os=detect_os(user_agent),
    )
