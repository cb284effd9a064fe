from enum import Enum


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
