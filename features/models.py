from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Union


class Quality(Enum):
    SD = "SD"
    HD = "HD"
    FHD = "FHD"
    UHD_4K = "4K"


class Status(Enum):
    LIVE = "live"
    OFFLINE = "offline"


@dataclass(frozen=True)
class Channel:
    id: int
    name: str
    category: str
    logo_url: str
    stream_url: str
    quality: Quality = Quality.HD
    language: str = "tr"
    status: Status = Status.LIVE
    viewers: int = 0
    description: str = ""
    sort_key: Union[int, str] = ""
    tvg_id: str = ""
    group: str = ""

    def to_dict(self):
        data = asdict(self)
        data["quality"] = self.quality.value
        data["status"] = self.status.value
        return data


@dataclass
class ChannelCatalog:
    channels: List[Channel]
    generated_at: float
    succeeded: bool = True
    message: str = ""
    source: str = field(default="upstream")

    def to_dict(self):
        data = {
            "success": self.succeeded,
            "count": len(self.channels),
            "channels": [channel.to_dict() for channel in self.channels],
            "timestamp": int(self.generated_at),
            "source": self.source,
        }
        if self.message:
            data["message"] = self.message
        return data
