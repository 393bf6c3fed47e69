from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


class Topic(str, Enum):
    BASICS = "BASICS"
    SORTING = "SORTING"
    ARRAYS = "ARRAYS"
    BINARY_SEARCH = "BINARY_SEARCH"
    STRINGS = "STRINGS"
    LINKED_LISTS = "LINKED_LISTS"
    RECURSION = "RECURSION"
    BIT_MANIPULATION = "BIT_MANIPULATION"
    STACKS_QUEUES = "STACKS_QUEUES"
    SLIDING_WINDOW = "SLIDING_WINDOW"
    HEAPS = "HEAPS"
    GREEDY = "GREEDY"
    BINARY_TREES = "BINARY_TREES"
    BST = "BST"
    GRAPHS = "GRAPHS"
    DYNAMIC_PROGRAMMING = "DYNAMIC_PROGRAMMING"
    TRIES = "TRIES"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Topic":
        """Map free text ("binary search") onto the closed set; unknown -> OTHER."""
        if not value:
            return cls.OTHER
        key = re.sub(r"\s+", "_", value.strip().upper())
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


@dataclass
class ProblemLog:
    id: str
    user_id: str
    day: date
    name: str
    difficulty: Difficulty
    topic: Topic = Topic.OTHER
    tags: List[str] = field(default_factory=list)
    external_url: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.day.isoformat(),
            "name": self.name,
            "topic": self.topic.value,
            "difficulty": self.difficulty.value,
            "tags": list(self.tags),
            "external_url": self.external_url,
            "notes": self.notes,
        }
