"""Data model — songs, app modes, worker Commands and UI Messages.

Commands travel UI → worker, Messages travel worker → UI (or come straight
from a keypress). Both are closed sets of frozen dataclasses; each value is
sent once and consumed once.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class SongEntry:
    id: str
    title: str
    channel: Optional[str] = None
    duration: Optional[float] = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "title": self.title}
        if self.channel:
            data["channel"] = self.channel
        if self.duration is not None:
            data["duration"] = self.duration
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SongEntry":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            channel=data.get("channel"),
            duration=data.get("duration"),
        )


class AppMode(Enum):
    PLAYLIST = "playlist"
    SEARCH_INPUT = "search_input"
    SEARCH_BROWSE = "search_browse"

    @property
    def label(self) -> str:
        if self is AppMode.PLAYLIST:
            return "Now Playing"
        return "Song Search"


# ── Commands (UI → worker) ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Search:
    query: str
    page: Optional[str] = None   # catalog page token, None for the first page


@dataclass(frozen=True)
class Play:
    song_id: str


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class Seek:
    seconds: float


@dataclass(frozen=True)
class SavePlaylist:
    songs: tuple = ()


Command = Search | Play | Stop | Pause | Resume | Seek | SavePlaylist


# ── Messages (→ UI) ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GoToSearch:
    pass


@dataclass(frozen=True)
class GoToSearchBrowse:
    pass


@dataclass(frozen=True)
class GoToPlaylist:
    pass


@dataclass(frozen=True)
class SearchSong:
    pass


@dataclass(frozen=True)
class AddSelectedToPlaylist:
    pass


@dataclass(frozen=True)
class RemoveSong:
    pass


@dataclass(frozen=True)
class NextItem:
    pass


@dataclass(frozen=True)
class PrevItem:
    pass


@dataclass(frozen=True)
class NextPage:
    pass


@dataclass(frozen=True)
class PrevPage:
    pass


@dataclass(frozen=True)
class PlaySelected:
    pass


@dataclass(frozen=True)
class NextSong:
    pass


@dataclass(frozen=True)
class PrevSong:
    pass


@dataclass(frozen=True)
class ToggleShuffle:
    pass


@dataclass(frozen=True)
class TogglePause:
    pass


@dataclass(frozen=True)
class StopPlayback:
    pass


@dataclass(frozen=True)
class SeekForward:
    pass


@dataclass(frozen=True)
class SeekBackward:
    pass


@dataclass(frozen=True)
class InputText:
    char: str


@dataclass(frozen=True)
class DeleteText:
    pass


@dataclass(frozen=True)
class DisplaySearchResult:
    results: tuple = ()
    page: Optional[str] = None        # token that was requested
    next_page: Optional[str] = None   # token for the page after this one


@dataclass(frozen=True)
class SongStarted:
    timestamp: float


@dataclass(frozen=True)
class SongStopped:
    reason: str


@dataclass(frozen=True)
class SongDuration:
    seconds: float


@dataclass(frozen=True)
class PlaybackError:
    reason: str


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Noop:
    pass


Message = (
    GoToSearch | GoToSearchBrowse | GoToPlaylist
    | SearchSong | AddSelectedToPlaylist | RemoveSong
    | NextItem | PrevItem | NextPage | PrevPage
    | PlaySelected | NextSong | PrevSong | ToggleShuffle
    | TogglePause | StopPlayback | SeekForward | SeekBackward
    | InputText | DeleteText
    | DisplaySearchResult | SongStarted | SongStopped | SongDuration | PlaybackError
    | Quit | Noop
)


@dataclass
class AppState:
    """Everything the UI knows. Only MusicApp.update writes it."""
    mode: AppMode = AppMode.PLAYLIST
    playlist: list[SongEntry] = field(default_factory=list)
    search_results: list[SongEntry] = field(default_factory=list)
    cursor: int = 0
    page_size: int = 10
    keyword: str = ""
    last_query: str = ""
    next_page: Optional[str] = None
    loading: bool = False
    playing: bool = False
    paused: bool = False
    playing_index: Optional[int] = None
    now_playing: Optional[SongEntry] = None
    last_started: float = 0.0
    song_duration: Optional[float] = None
    is_shuffle: bool = False
    status: str = ""
