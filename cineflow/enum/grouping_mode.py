import enum


class GroupingMode(enum.Enum):
    FLAT = "flat"
    SERIES = "series"
