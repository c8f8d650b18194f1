"""Page capture contract for the ``shot`` quick action.

Rendering web pages is done by a headless browser outside the bridge;
the dispatcher only needs something that turns (url, selector, padding)
into an image reference it can send back to chat.
"""

from typing import Protocol, Sequence, Tuple, runtime_checkable

from pydantic import BaseModel


class CaptureError(Exception):
    """Raised by a PageCapture when the page or element cannot be captured."""


class BoundingBox(BaseModel):
    """Rectangle of an element on a rendered page, in CSS pixels."""

    x: float
    y: float
    width: float
    height: float


def normalize_padding(padding: Sequence[float]) -> Tuple[float, float, float, float]:
    """Expand ``[top, right, bottom, left]`` with missing values set to 0."""
    values = list(padding[:4]) + [0.0] * (4 - min(len(padding), 4))
    top, right, bottom, left = values
    return top, right, bottom, left


def pad_box(box: BoundingBox, padding: Sequence[float]) -> BoundingBox:
    """Grow a bounding box by CSS-style padding."""
    top, right, bottom, left = normalize_padding(padding)
    return BoundingBox(
        x=box.x - left,
        y=box.y - top,
        width=box.width + left + right,
        height=box.height + top + bottom,
    )


@runtime_checkable
class PageCapture(Protocol):
    """Protocol for capturing one element of a web page."""

    async def capture(
        self,
        url: str,
        selector: str,
        padding: Tuple[float, float, float, float],
    ) -> str:
        """Capture the element and return a chat image reference.

        Raises:
            CaptureError: If the page fails to load or the element is missing.
        """
        ...
