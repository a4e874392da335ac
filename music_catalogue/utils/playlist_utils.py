"""Playlist import from a Winamp media library.

Winamp keeps its playlist index in Plugins/ml/playlists/playlists.xml
(UTF-16LE) and one M3U8 file per playlist beside it:

    <playlists playlists="2">
      <playlist filename="plf1A2B.m3u8" title="Favourites" id="{...}" songs="12" />
    </playlists>

Track URIs in the M3U8 files are Windows paths. They are made relative to
the Windows music root so they match record keys ("Artist/Album/01.Song.mp3").

Functions:
- find_playlists(): Read playlist definitions selected by a profile
- normalize_track_path(): Windows track URI -> record key
- resolve_playlists(): Attach catalogued records to playlist tracks
"""

import re
import xml.etree.ElementTree as ET  # nosec B405 - parses the user's own local media library
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath, PureWindowsPath

from loguru import logger

from .models import Playlist, PlaylistDefinition, PlaylistTrack, Record

PlaylistFilter = Callable[[dict[str, str]], bool]
PlaylistMap = Callable[[dict[str, str]], dict[str, str]]


def _keep_all(playlist: dict[str, str]) -> bool:
    return True


def _unchanged(playlist: dict[str, str]) -> dict[str, str]:
    return playlist


@dataclass
class PlaylistProfile:
    """Selects and reshapes the playlists that end up in the catalogue.

    filter and map receive the attributes of each <playlist> element
    (filename, title, id, ...).
    """

    store: Path
    win32_base_dir: str = ""
    filter: PlaylistFilter = field(default=_keep_all)
    map: PlaylistMap = field(default=_unchanged)

    @property
    def playlists_dir(self) -> Path:
        return self.store / "Plugins" / "ml" / "playlists"


def title_filter(pattern: str) -> PlaylistFilter:
    """Keep playlists whose title matches a regular expression."""
    regex = re.compile(pattern)

    def keep(playlist: dict[str, str]) -> bool:
        return regex.search(playlist.get("title", "")) is not None

    return keep


def strip_title_prefix(prefix: str) -> PlaylistMap:
    """Remove a prefix from playlist titles."""

    def strip(playlist: dict[str, str]) -> dict[str, str]:
        title = playlist.get("title", "")
        if prefix and title.startswith(prefix):
            return {**playlist, "title": title[len(prefix) :].strip()}
        return playlist

    return strip


def parse_playlists_xml(playlists_dir: Path) -> list[dict[str, str]]:
    """Read the playlist index.

    Args:
        playlists_dir: Directory holding playlists.xml

    Returns:
        Attributes of every <playlist> element, in file order
    """
    xml_path = playlists_dir / "playlists.xml"
    text = xml_path.read_bytes().decode("utf-16-le").lstrip("\ufeff")
    root = ET.fromstring(text)  # nosec B314
    return [dict(element.attrib) for element in root.iter("playlist")]


def read_m3u_uris(m3u_path: Path) -> list[str]:
    """Read track URIs from an M3U/M3U8 file.

    Comment lines (#EXTM3U, #EXTINF, ...) and blank lines are skipped.
    """
    try:
        # Try UTF-8 first (M3U8 standard)
        lines = m3u_path.read_text(encoding="utf-8-sig").splitlines()
    except UnicodeDecodeError:
        # Fall back to latin-1 for older M3U files
        lines = m3u_path.read_text(encoding="latin-1").splitlines()

    uris = []
    for line in lines:
        line = line.strip()
        if line and not line.startswith("#"):
            uris.append(line)
    return uris


def normalize_track_path(uri: str, win32_base_dir: str) -> str:
    """Convert a playlist track URI to a record key.

    Args:
        uri: Track location as written in the playlist
        win32_base_dir: Windows directory that corresponds to the music root

    Returns:
        '/'-separated path relative to the music root

    Examples:
        >>> normalize_track_path("D:\\\\Music\\\\Artist\\\\01.Song.mp3", "D:\\\\Music")
        'Artist/01.Song.mp3'
        >>> normalize_track_path("Artist/01.Song.mp3", "D:\\\\Music")
        'Artist/01.Song.mp3'
    """
    win_path = PureWindowsPath(uri)
    if win_path.drive or win_path.root:
        if win32_base_dir:
            try:
                return win_path.relative_to(PureWindowsPath(win32_base_dir)).as_posix()
            except ValueError:
                logger.debug(f"Track {uri} is outside {win32_base_dir}")
        return win_path.as_posix()

    return PurePosixPath(uri.replace("\\", "/")).as_posix()


def read_playlist(
    playlist: dict[str, str],
    playlists_dir: Path,
    win32_base_dir: str,
) -> PlaylistDefinition:
    """Read one playlist file into a definition with normalized track paths."""
    filename = playlist.get("filename", "")
    uris = read_m3u_uris(playlists_dir / filename)
    return PlaylistDefinition(
        id=playlist.get("id", filename),
        title=playlist.get("title", filename),
        file=filename,
        tracks=[normalize_track_path(uri, win32_base_dir) for uri in uris],
    )


def find_playlists(profile: PlaylistProfile) -> list[PlaylistDefinition]:
    """Return every playlist in the store that meets the profile.

    Args:
        profile: Playlist selection profile

    Returns:
        Playlist definitions in index order; playlists whose file cannot be
        read are skipped with a warning
    """
    playlists_dir = profile.playlists_dir
    selected = [profile.map(pl) for pl in parse_playlists_xml(playlists_dir) if profile.filter(pl)]

    definitions = []
    for playlist in selected:
        try:
            definitions.append(read_playlist(playlist, playlists_dir, profile.win32_base_dir))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping playlist '{playlist.get('title', '?')}': {e}")
    logger.info(f"Read {len(definitions)} playlists from {playlists_dir}")
    return definitions


def resolve_playlists(
    definitions: Sequence[PlaylistDefinition],
    records: Mapping[str, Record],
) -> list[Playlist]:
    """Join playlist tracks against the record set.

    Playlist order and track order are preserved. A track whose path is not
    catalogued, or whose record is an error record, stays in place with
    record=None.

    Args:
        definitions: Playlist definitions with normalized track paths
        records: Mapping of path to Record

    Returns:
        Resolved playlists
    """
    playlists = []
    for definition in definitions:
        tracks = []
        for path in definition.tracks:
            record = records.get(path)
            if record is not None and record.is_error:
                record = None
            tracks.append(PlaylistTrack(path=path, record=record))

        playlist = Playlist(
            id=definition.id,
            title=definition.title,
            file=definition.file,
            tracks=tracks,
        )
        if playlist.unresolved_count:
            logger.warning(
                f"Playlist '{playlist.title}': {playlist.unresolved_count} of "
                f"{len(tracks)} tracks are not in the catalogue"
            )
        playlists.append(playlist)

    return playlists
