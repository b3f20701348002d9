"""Image reference value object."""

from dataclasses import dataclass
from typing import Any


# Hey future me - we never download artwork, we only keep the provider CDN URL plus
# the source tag so the read API can tell a Spotify image from anything else later.
@dataclass(frozen=True)
class ImageRef:
    """Reference to a remote image hosted by a provider."""

    url: str
    source: str
    width: int | None = None
    height: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON storage (None dimensions are dropped)."""
        data: dict[str, Any] = {"url": self.url, "source": self.source}
        if self.width is not None:
            data["width"] = self.width
        if self.height is not None:
            data["height"] = self.height
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageRef":
        """Rebuild from a stored dict."""
        return cls(
            url=data.get("url", ""),
            source=data.get("source", ""),
            width=data.get("width"),
            height=data.get("height"),
        )
