"""Key color handling during region growing."""
from dataclasses import dataclass

from colortree.types import Color, KeyingAction


@dataclass(frozen=True)
class KeyingPolicy:
    """Decides how pixels of the key color are grouped."""
    key_color: Color = Color(0, 0, 0)
    action: KeyingAction = KeyingAction.KEEP

    @property
    def active(self) -> bool:
        return self.action is not KeyingAction.KEEP

    @property
    def gathers_background(self) -> bool:
        """Key pixels all go into one background cluster."""
        return self.action is KeyingAction.BACKGROUND

    @property
    def discards(self) -> bool:
        return self.action is KeyingAction.DISCARD

    def is_key(self, color: Color) -> bool:
        return self.active and color == self.key_color

    def can_join(self, a: Color, b: Color) -> bool:
        """Whether keying allows two adjacent pixels in the same cluster."""
        if not self.active:
            return True
        return (a == self.key_color) == (b == self.key_color)
