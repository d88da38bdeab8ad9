from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

CAPTION_CHUNK_SIZE = 8


@dataclass
class CaptionWord:
    text: str
    start_time: float
    end_time: float

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "startTime": self.start_time, "endTime": self.end_time}


@dataclass
class Caption:
    text: str
    start_time: float
    end_time: float
    words: List[CaptionWord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "words": [w.to_dict() for w in self.words],
        }


def group_words_into_captions(words: Iterable[CaptionWord], chunk_size: int = CAPTION_CHUNK_SIZE) -> List[Caption]:
    """Split an ordered word stream into consecutive captions of `chunk_size` words.

    Each caption spans its first word's start to its last word's end; only the
    final caption may hold fewer words.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    ordered = list(words)
    captions: List[Caption] = []
    for i in range(0, len(ordered), chunk_size):
        chunk = ordered[i:i + chunk_size]
        captions.append(
            Caption(
                text=" ".join(w.text for w in chunk),
                start_time=chunk[0].start_time,
                end_time=chunk[-1].end_time,
                words=chunk,
            )
        )
    return captions
