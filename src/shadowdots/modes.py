from enum import Enum


class VisualMode(Enum):
    FLAT_COLOR = "FLAT_COLOR"
    IMAGE_REVEAL = "IMAGE_REVEAL"
    VIDEO_REVEAL = "VIDEO_REVEAL"
