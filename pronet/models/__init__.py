"""
Data models for the single-page analysis pipeline.
Defines the candidates emitted by every detector and the response envelope.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Union
from enum import Enum


class ContentSignal(Enum):
    FEED = "feed"
    ARTICLE = "article"
    STRUCTURED_DATA = "structured-data"
    SOCIAL_META = "social-meta"
    HEURISTIC = "heuristic"


class CallOrigin(Enum):
    STATIC_SCRIPT = "static-script"
    DYNAMIC_CAPTURE = "dynamic-capture"
    SPECIAL_FILE = "special-file"


class ScriptOrigin(Enum):
    INLINE = "inline"
    EXTERNAL = "external-url"


class Category(Enum):
    XHR = "XHR"
    FETCH = "Fetch"
    DOCUMENT = "Document"
    STYLESHEET = "Stylesheet"
    SCRIPT = "Script"
    IMAGE = "Image"
    MEDIA = "Media"
    FONT = "Font"
    SOCKET = "Socket"
    MANIFEST = "Manifest"
    HIDDEN_API = "Hidden APIs"
    GRAPHQL = "GraphQL"
    SITEMAP = "Sitemap"
    ROBOTS = "Robots"
    OTHER = "Other"


@dataclass
class ContentCandidate:
    url: str
    title: str
    signal: ContentSignal
    score: float

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "signal": self.signal.value,
            "score": round(self.score, 4)
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ContentCandidate":
        data = data.copy()
        data["signal"] = ContentSignal(data["signal"])
        return cls(**data)


@dataclass
class NetworkCallCandidate:
    url: str
    method: str
    context: str
    category: Category
    origin: CallOrigin
    score: float
    signature: str = "unknown"
    idiom: str = "literal"
    metadata: Dict[str, Any] = field(default_factory=dict)

    def fingerprint(self) -> str:
        return f"{self.url}|{self.method}|{self.origin.value}"

    def to_dict(self) -> dict:
        data = {
            "url": self.url,
            "method": self.method,
            "context": self.context,
            "category": self.category.value,
            "origin": self.origin.value,
            "score": round(self.score, 4),
            "signature": self.signature,
            "idiom": self.idiom
        }
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkCallCandidate":
        data = data.copy()
        data["category"] = Category(data["category"])
        data["origin"] = CallOrigin(data["origin"])
        return cls(**data)


@dataclass
class ScriptSource:
    origin: ScriptOrigin
    text: str
    url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "origin": self.origin.value,
            "url": self.url,
            "size": len(self.text)
        }


@dataclass
class PageInfo:
    title: Optional[str] = None
    load_time_ms: Optional[float] = None
    memory_usage: Optional[int] = None
    captured: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "title": self.title,
            "loadTime": self.load_time_ms,
            "captured": self.captured
        }
        if self.memory_usage is not None:
            data["memoryUsage"] = self.memory_usage
        if self.error:
            data["error"] = self.error
        return data


Candidate = Union[ContentCandidate, NetworkCallCandidate]


@dataclass
class ScanResult:
    url: str
    mode: str
    items: List[Candidate] = field(default_factory=list)
    page_info: Optional[PageInfo] = None

    @property
    def is_content(self) -> bool:
        return self.mode == "posts"

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {
            "url": self.url,
            "items": [item.to_dict() for item in self.items]
        }
        if self.is_content:
            data["found"] = len(self.items)
        else:
            data["count"] = len(self.items)
            if self.page_info is not None:
                data["pageInfo"] = self.page_info.to_dict()
        return data
