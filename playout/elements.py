"""
Playlist elements.

An element is either a VideoElement (a source file streamed as-is through the
encoder) or an IdleElement (a synthesized intermission slate). Code that needs
to behave differently per kind dispatches with isinstance and raises TypeError
for anything else, so a new kind cannot slip through unnoticed.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Union

from .config import DEFAULT_QUALITY_TIER
from .errors import ElementError


class AspectClass(Enum):
    WIDESCREEN = "16:9"
    LEGACY = "4:3"


@dataclass(frozen=True)
class VideoElement:
    path: str
    aspect: AspectClass = AspectClass.WIDESCREEN
    tier: int = DEFAULT_QUALITY_TIER
    banner: bool = False
    title: str = ""

    def label(self) -> str:
        """Human label used by the scrolling banner."""
        if self.title:
            return self.title
        stem = Path(self.path).stem
        return " ".join(stem.replace("_", " ").replace(".", " ").split())


@dataclass(frozen=True)
class IdleElement:
    seconds: int
    description: str = ""


Element = Union[VideoElement, IdleElement]


def describe(element: Element) -> str:
    if isinstance(element, VideoElement):
        return element.title or element.path
    if isinstance(element, IdleElement):
        if element.description:
            return element.description
        return f"Idle for {element.seconds} seconds"
    raise TypeError(f"unknown playlist element: {element!r}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def element_from_dict(data: Dict[str, Any]) -> Element:
    """
    Build an element from its JSON form.

    video: {"type": "video", "path": ..., "hi_quality": bool,
            "aspect_ratio_4_3": bool, "tier": int, "banner": bool, "title": str}
    idle:  {"type": "idle", "idle_seconds": int, "description": str}
    """
    if not isinstance(data, dict):
        raise ElementError("element must be an object")
    kind = str(data.get("type") or "video").strip().lower()

    if kind == "video":
        path = data.get("path")
        if not path or not isinstance(path, str):
            raise ElementError("video element requires a path")
        if data.get("tier") is not None:
            try:
                tier = int(data["tier"])
            except (TypeError, ValueError):
                raise ElementError("tier must be an integer")
        elif _as_bool(data.get("hi_quality", False)):
            tier = 0
        else:
            tier = DEFAULT_QUALITY_TIER
        aspect = (
            AspectClass.LEGACY
            if _as_bool(data.get("aspect_ratio_4_3", False))
            else AspectClass.WIDESCREEN
        )
        return VideoElement(
            path=path,
            aspect=aspect,
            tier=tier,
            banner=_as_bool(data.get("banner", False)),
            title=str(data.get("title") or ""),
        )

    if kind == "idle":
        try:
            seconds = int(data.get("idle_seconds"))
        except (TypeError, ValueError):
            raise ElementError("idle element requires integer idle_seconds")
        if seconds <= 0:
            raise ElementError("idle_seconds must be positive")
        return IdleElement(seconds=seconds, description=str(data.get("description") or ""))

    raise ElementError(f"unknown element type: {kind!r}")


def element_to_dict(element: Element) -> Dict[str, Any]:
    if isinstance(element, VideoElement):
        return {
            "type": "video",
            "path": element.path,
            "hi_quality": element.tier == 0,
            "aspect_ratio_4_3": element.aspect is AspectClass.LEGACY,
            "tier": element.tier,
            "banner": element.banner,
            "title": element.title,
            "desc": describe(element),
        }
    if isinstance(element, IdleElement):
        return {
            "type": "idle",
            "idle_seconds": element.seconds,
            "description": element.description,
            "desc": describe(element),
        }
    raise TypeError(f"unknown playlist element: {element!r}")


def elements_from_list(items: List[Dict[str, Any]]) -> List[Element]:
    if not isinstance(items, list):
        raise ElementError("expected a list of elements")
    return [element_from_dict(i) for i in items]

