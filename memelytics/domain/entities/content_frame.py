from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from memelytics.domain.entities.editor_state import Padding

# Frame used before any template is loaded
PLACEHOLDER_WIDTH = 800
PLACEHOLDER_HEIGHT = 600


class FramePolicy(str, Enum):
    """How the authoring canvas size is derived for an editing session."""

    FIXED = "fixed"  # frame equals the template's natural size
    PADDED = "padded"  # template natural size grown by an adjustable padding box


@dataclass(frozen=True)
class ContentFrame:
    width: int
    height: int
    policy: FramePolicy
    # Where the base template sits inside the frame
    base_x: int = 0
    base_y: int = 0
    base_width: int = 0
    base_height: int = 0

    @property
    def allows_free_rotation(self) -> bool:
        return self.policy is FramePolicy.PADDED

    def contains_box(self, x: float, y: float, w: float, h: float) -> bool:
        return x >= 0 and y >= 0 and x + w <= self.width and y + h <= self.height

    def contains_point(self, x: float, y: float) -> bool:
        return 0 <= x <= self.width and 0 <= y <= self.height


def resolve_frame(
    policy: FramePolicy, natural_size: tuple[int, int] | None, padding: Padding
) -> ContentFrame:
    if natural_size is None:
        return ContentFrame(width=PLACEHOLDER_WIDTH, height=PLACEHOLDER_HEIGHT, policy=policy)
    nat_w, nat_h = natural_size
    if policy is FramePolicy.PADDED:
        return ContentFrame(
            width=nat_w + padding.left + padding.right,
            height=nat_h + padding.top + padding.bottom,
            policy=policy,
            base_x=padding.left,
            base_y=padding.top,
            base_width=nat_w,
            base_height=nat_h,
        )
    return ContentFrame(
        width=nat_w, height=nat_h, policy=policy, base_width=nat_w, base_height=nat_h
    )
