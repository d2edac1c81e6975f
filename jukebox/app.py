"""UI state machine — keys become Messages, Messages update AppState, AppState renders.

update() is the only writer of AppState. It never does I/O: anything that
needs the network, mpv or the disk goes out as a Command on the command
channel and comes back later as a Message.
"""
import logging
import time
from typing import Optional

from rich.console import Group
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from .channel import CommandChannel
from .config import SEEK_SECONDS
from .models import (
    AddSelectedToPlaylist,
    AppMode,
    AppState,
    DeleteText,
    DisplaySearchResult,
    GoToPlaylist,
    GoToSearch,
    GoToSearchBrowse,
    InputText,
    Message,
    NextItem,
    NextPage,
    NextSong,
    Noop,
    Pause,
    Play,
    PlaybackError,
    PlaySelected,
    PrevItem,
    PrevPage,
    PrevSong,
    Quit,
    RemoveSong,
    Resume,
    SavePlaylist,
    Search,
    SearchSong,
    Seek,
    SeekBackward,
    SeekForward,
    SongDuration,
    SongEntry,
    SongStarted,
    SongStopped,
    Stop,
    StopPlayback,
    TogglePause,
    ToggleShuffle,
)
from .playqueue import PlayQueue
from .utils import fmt_time, paginate, total_pages, truncate

logger = logging.getLogger(__name__)

# header, two rules, page line, footer, status
CHROME_LINES = 6

_ANY_MODE_KEYS = {
    "ctrl-c": Quit,
    "ctrl-d": Quit,
}

_PLAYLIST_KEYS = {
    "enter": PlaySelected,
    "/": GoToSearch,
    "tab": GoToSearchBrowse,
    "j": NextItem,
    "down": NextItem,
    "k": PrevItem,
    "up": PrevItem,
    ">": NextPage,
    "<": PrevPage,
    "x": RemoveSong,
    "n": NextSong,
    "p": PrevSong,
    "s": ToggleShuffle,
    " ": TogglePause,
    "S": StopPlayback,
    "right": SeekForward,
    "left": SeekBackward,
    "q": Quit,
}

_BROWSE_KEYS = {
    "esc": GoToPlaylist,
    "q": GoToPlaylist,
    "/": GoToSearch,
    "j": NextItem,
    "down": NextItem,
    "k": PrevItem,
    "up": PrevItem,
    ">": NextPage,
    "<": PrevPage,
    "enter": PlaySelected,
    "a": AddSelectedToPlaylist,
}

_SEARCH_INPUT_KEYS = {
    "esc": GoToPlaylist,
    "backspace": DeleteText,
    "enter": SearchSong,
}


class MusicApp:
    def __init__(
        self,
        commands: CommandChannel,
        playlist: Optional[list[SongEntry]] = None,
        page_size: int = 10,
        shuffle: bool = False,
        clock=time.monotonic,
    ):
        self.commands = commands
        self.state = AppState(
            playlist=list(playlist or []),
            page_size=max(1, page_size),
            is_shuffle=shuffle,
        )
        self.queue = PlayQueue.build(len(self.state.playlist), shuffle)
        self._clock = clock
        self._paused_at = 0.0

    # ── Keys ─────────────────────────────────────────────────────────────────

    def input(self, key: Optional[str]) -> Message:
        """Map one normalised key name to a Message for the current mode."""
        if key is None:
            return Noop()
        if key in _ANY_MODE_KEYS:
            return _ANY_MODE_KEYS[key]()

        mode = self.state.mode
        if mode is AppMode.SEARCH_INPUT:
            if key in _SEARCH_INPUT_KEYS:
                return _SEARCH_INPUT_KEYS[key]()
            if len(key) == 1 and key.isprintable():
                return InputText(key)
            return Noop()
        keymap = _BROWSE_KEYS if mode is AppMode.SEARCH_BROWSE else _PLAYLIST_KEYS
        factory = keymap.get(key)
        return factory() if factory else Noop()

    def resize(self, height: int):
        """Fit the page to a terminal `height` rows tall."""
        self.state.page_size = max(1, height - CHROME_LINES)

    # ── Update ───────────────────────────────────────────────────────────────

    def update(self, msg: Message) -> bool:
        """Apply one Message. Returns False when the app should exit."""
        s = self.state

        if isinstance(msg, Quit):
            return False
        if isinstance(msg, Noop):
            return True

        if isinstance(msg, GoToSearch):
            s.keyword = ""
            self._switch_mode(AppMode.SEARCH_INPUT)
        elif isinstance(msg, GoToSearchBrowse):
            self._switch_mode(AppMode.SEARCH_BROWSE)
        elif isinstance(msg, GoToPlaylist):
            self._switch_mode(AppMode.PLAYLIST)
        elif isinstance(msg, InputText):
            if s.mode is AppMode.SEARCH_INPUT:
                s.keyword += msg.char
        elif isinstance(msg, DeleteText):
            if s.mode is AppMode.SEARCH_INPUT:
                s.keyword = s.keyword[:-1]
        elif isinstance(msg, SearchSong):
            self._start_search()
        elif isinstance(msg, DisplaySearchResult):
            self._show_results(msg)
        elif isinstance(msg, NextItem):
            self._move_cursor(1)
        elif isinstance(msg, PrevItem):
            self._move_cursor(-1)
        elif isinstance(msg, NextPage):
            self._next_page()
        elif isinstance(msg, PrevPage):
            page = s.cursor // s.page_size
            s.cursor = max(page - 1, 0) * s.page_size
        elif isinstance(msg, PlaySelected):
            self._play_selected()
        elif isinstance(msg, AddSelectedToPlaylist):
            song = self._selected()
            if s.mode is AppMode.SEARCH_BROWSE and song is not None:
                self._add_to_playlist(song)
        elif isinstance(msg, RemoveSong):
            self._remove_selected()
        elif isinstance(msg, NextSong):
            self._play_index(self.queue.advance())
        elif isinstance(msg, PrevSong):
            self._play_index(self.queue.retreat())
        elif isinstance(msg, ToggleShuffle):
            s.is_shuffle = not s.is_shuffle
            self._rebuild_queue()
        elif isinstance(msg, TogglePause):
            self._toggle_pause()
        elif isinstance(msg, StopPlayback):
            self._stop()
        elif isinstance(msg, SeekForward):
            self._seek(SEEK_SECONDS)
        elif isinstance(msg, SeekBackward):
            self._seek(-SEEK_SECONDS)
        elif isinstance(msg, SongStarted):
            s.playing = True
            s.paused = False
            s.last_started = msg.timestamp
        elif isinstance(msg, SongStopped):
            s.playing = False
            s.paused = False
            if msg.reason == "eof":
                self._play_index(self.queue.advance())
        elif isinstance(msg, SongDuration):
            s.song_duration = msg.seconds
        elif isinstance(msg, PlaybackError):
            s.status = msg.reason
        else:
            logger.warning("Unhandled message %r", msg)
        return True

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _active_list(self) -> list[SongEntry]:
        if self.state.mode is AppMode.PLAYLIST:
            return self.state.playlist
        return self.state.search_results

    def _switch_mode(self, mode: AppMode):
        self.state.mode = mode
        self.state.cursor = 0

    def _send(self, command) -> bool:
        return self.commands.try_send(command)

    def _move_cursor(self, delta: int):
        items = self._active_list()
        if not items:
            self.state.cursor = 0
            return
        self.state.cursor = min(max(self.state.cursor + delta, 0), len(items) - 1)

    def _start_search(self):
        s = self.state
        if s.mode is not AppMode.SEARCH_INPUT or s.loading:
            return
        query = s.keyword.strip()
        if not query:
            return
        if not self._send(Search(query)):
            s.status = "Busy, try again."
            return
        s.last_query = query
        s.next_page = None
        s.loading = True
        s.status = ""

    def _show_results(self, msg: DisplaySearchResult):
        s = self.state
        s.loading = False
        s.next_page = msg.next_page
        if msg.page is None:
            s.search_results = list(msg.results)
            # late results while on the playlist wait behind Tab
            if s.mode is AppMode.SEARCH_INPUT:
                self._switch_mode(AppMode.SEARCH_BROWSE)
            elif s.mode is AppMode.SEARCH_BROWSE:
                s.cursor = 0
            return
        # follow-up page: append, land on the first new song
        known = {song.id for song in s.search_results}
        fresh = [song for song in msg.results if song.id not in known]
        if fresh and s.mode is AppMode.SEARCH_BROWSE:
            s.cursor = len(s.search_results)
        s.search_results.extend(fresh)

    def _next_page(self):
        s = self.state
        items = self._active_list()
        page = s.cursor // s.page_size
        pages = total_pages(len(items), s.page_size)
        if page < pages - 1:
            s.cursor = (page + 1) * s.page_size
        elif s.mode is AppMode.SEARCH_BROWSE and s.next_page and not s.loading:
            if self._send(Search(s.last_query, s.next_page)):
                s.loading = True
            else:
                s.status = "Busy, try again."

    def _rebuild_queue(self):
        s = self.state
        self.queue = PlayQueue.build(len(s.playlist), s.is_shuffle)
        if s.playing_index is not None:
            self.queue.jump_to(s.playing_index)

    def _persist(self):
        self._send(SavePlaylist(tuple(self.state.playlist)))

    def _add_to_playlist(self, song: SongEntry) -> int:
        """Append `song` unless it's already there. Returns its playlist index."""
        s = self.state
        for i, existing in enumerate(s.playlist):
            if existing.id == song.id:
                return i
        s.playlist.append(song)
        self._persist()
        self._rebuild_queue()
        return len(s.playlist) - 1

    def _selected(self) -> Optional[SongEntry]:
        items = self._active_list()
        if 0 <= self.state.cursor < len(items):
            return items[self.state.cursor]
        return None

    def _play_selected(self):
        s = self.state
        song = self._selected()
        if song is None:
            return
        if s.mode is AppMode.PLAYLIST:
            self._play_index(s.cursor)
        elif s.mode is AppMode.SEARCH_BROWSE:
            self._play_index(self._add_to_playlist(song))

    def _play_index(self, index: Optional[int]):
        s = self.state
        if index is None or not 0 <= index < len(s.playlist):
            return
        song = s.playlist[index]
        self.queue.jump_to(index)
        s.playing_index = index
        s.now_playing = song
        s.song_duration = song.duration
        s.paused = False
        s.status = ""
        self._send(Play(song.id))

    def _remove_selected(self):
        s = self.state
        if s.mode is not AppMode.PLAYLIST or self._selected() is None:
            return
        index = s.cursor
        removed = s.playlist.pop(index)
        logger.info("Removed %s from playlist", removed.id)
        if s.playing_index is not None:
            if s.playing_index == index:
                s.playing_index = None
            elif s.playing_index > index:
                s.playing_index -= 1
        s.cursor = min(s.cursor, max(len(s.playlist) - 1, 0))
        self._persist()
        self._rebuild_queue()

    def _toggle_pause(self):
        s = self.state
        if not s.playing:
            return
        if s.paused:
            s.paused = False
            s.last_started += self._clock() - self._paused_at
            self._send(Resume())
        else:
            s.paused = True
            self._paused_at = self._clock()
            self._send(Pause())

    def _stop(self):
        s = self.state
        if s.now_playing is None and not s.playing:
            return
        self._send(Stop())
        s.playing = False
        s.paused = False
        s.playing_index = None
        s.now_playing = None
        s.song_duration = None

    def _seek(self, seconds: float):
        s = self.state
        if not s.playing:
            return
        # keep the header clock in step with mpv, never before the start
        s.last_started = min(s.last_started - seconds, self._now())
        self._send(Seek(seconds))

    def _now(self) -> float:
        return self._paused_at if self.state.paused else self._clock()

    def elapsed(self) -> float:
        if not self.state.playing:
            return 0.0
        return max(0.0, self._now() - self.state.last_started)

    # ── Render ───────────────────────────────────────────────────────────────

    def render(self) -> Group:
        return Group(
            self._render_header(),
            Rule(style="dim"),
            self._render_list(),
            Rule(style="dim"),
            self._render_footer(),
        )

    def _render_header(self) -> Text:
        s = self.state
        if s.now_playing is None:
            return Text(f"  {s.mode.label}", style="bold")
        icon = "⏸" if s.paused else "▶"
        shuffle = "~" if s.is_shuffle else ""
        total = fmt_time(s.song_duration) if s.song_duration else "--:--"
        header = Text("  ")
        header.append(f"{icon}{shuffle} ", style="bold green" if s.playing else "dim")
        header.append(truncate(s.now_playing.title, 60), style="bold")
        header.append(f" - {fmt_time(self.elapsed())} / {total}", style="dim")
        return header

    def _render_list(self):
        s = self.state
        items = self._active_list()
        if not items:
            if s.mode is AppMode.PLAYLIST:
                return Text("  Nothing to show. Hit / to search and add something here.", style="dim")
            if s.mode is AppMode.SEARCH_BROWSE and s.last_query:
                return Text(f"  No results for '{s.last_query}'.", style="dim")
            return Text("")

        page = s.cursor // s.page_size
        pages = total_pages(len(items), s.page_size)
        in_playlist = {song.id for song in s.playlist}

        table = Table(show_header=False, box=None, padding=(0, 2), expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Title", ratio=3, no_wrap=True, overflow="ellipsis")
        table.add_column("Channel", style="dim", ratio=1, no_wrap=True, overflow="ellipsis")
        table.add_column("Length", width=8, justify="right")

        start = page * s.page_size
        for offset, song in enumerate(paginate(items, page, s.page_size)):
            i = start + offset
            styles = []
            if s.mode is AppMode.PLAYLIST and i == s.playing_index:
                styles.append("bold green")
            elif s.mode is not AppMode.PLAYLIST and song.id in in_playlist:
                styles.append("blue")
            if i == s.cursor:
                styles.append("reverse")
            table.add_row(
                str(i + 1),
                Text(song.title),
                Text(song.channel or ""),
                fmt_time(song.duration) if song.duration else "",
                style=" ".join(styles),
            )

        more = " (more available)" if s.mode is not AppMode.PLAYLIST and s.next_page else ""
        return Group(table, Text(f"  Page: {page + 1}/{pages}{more}", style="dim"))

    def _render_footer(self) -> Group:
        s = self.state
        lines = []
        if s.loading:
            lines.append(Text("  Loading...", style="yellow"))
        elif s.mode is AppMode.SEARCH_INPUT:
            box = Text("  Search: ", style="bold")
            box.append(s.keyword)
            box.append("█", style="blink")
            lines.append(box)
        elif s.mode is AppMode.SEARCH_BROWSE:
            lines.append(Text(
                "  j/k  ↑/↓  ·  </> page  ·  Enter play  ·  a add  ·  / search  ·  q/Esc back",
                style="dim",
            ))
        else:
            lines.append(Text(
                "  j/k  ↑/↓  ·  </> page  ·  Enter play  ·  n/p next/prev  ·  x remove  ·  "
                f"s shuffle {'ON' if s.is_shuffle else 'OFF'}  ·  space pause  ·  ←/→ seek  ·  "
                "/ search  ·  Tab results  ·  q quit",
                style="dim",
            ))
        if s.status:
            lines.append(Text(f"  {s.status}", style="yellow"))
        return Group(*lines)
