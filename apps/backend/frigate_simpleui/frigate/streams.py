"""go2rtc stream entries.

An entry in ``go2rtc.streams.<camera>`` is a source URL, optionally wrapped in
``ffmpeg:`` and followed by ``#key=value`` directives that ask go2rtc to
transcode (``ffmpeg:rtsp://cam/main#video=h264#audio=aac``). The same syntax
names another stream instead of a URL (``ffmpeg:front_door#audio=opus``).
All reading and writing of that syntax goes through :class:`StreamSource`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from frigate_simpleui.util.security import is_rtsp_url

FFMPEG_PREFIX = "ffmpeg:"


class DirectiveKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"


@dataclass(frozen=True)
class StreamDirective:
    kind: DirectiveKind
    codec: str

    def render(self) -> str:
        return f"#{self.kind.value}={self.codec}"

    @classmethod
    def parse(cls, fragment: str) -> StreamDirective | None:
        key, sep, value = fragment.partition("=")
        if not sep or not value:
            return None
        try:
            kind = DirectiveKind(key.strip().lower())
        except ValueError:
            return None
        return cls(kind=kind, codec=value.strip().lower())


H264 = StreamDirective(DirectiveKind.VIDEO, "h264")
AAC = StreamDirective(DirectiveKind.AUDIO, "aac")
OPUS = StreamDirective(DirectiveKind.AUDIO, "opus")


@dataclass(frozen=True)
class StreamSource:
    target: str
    ffmpeg: bool = False
    directives: tuple[StreamDirective, ...] = ()
    extras: tuple[str, ...] = ()

    @classmethod
    def parse(cls, entry: str) -> StreamSource:
        text = str(entry).strip()
        ffmpeg = text.startswith(FFMPEG_PREFIX)
        if ffmpeg:
            text = text[len(FFMPEG_PREFIX):]
        target, *fragments = text.split("#")
        directives: list[StreamDirective] = []
        extras: list[str] = []
        for fragment in fragments:
            directive = StreamDirective.parse(fragment)
            if directive is None:
                extras.append(fragment)
            else:
                directives.append(directive)
        return cls(target=target, ffmpeg=ffmpeg, directives=tuple(directives), extras=tuple(extras))

    def render(self) -> str:
        prefix = FFMPEG_PREFIX if self.ffmpeg else ""
        suffix = "".join(d.render() for d in self.directives) + "".join(f"#{x}" for x in self.extras)
        return f"{prefix}{self.target}{suffix}"

    @property
    def is_rtsp(self) -> bool:
        return is_rtsp_url(self.target)

    def has(self, directive: StreamDirective) -> bool:
        return directive in self.directives


def camera_source(rtsp_url: str, force_h264: bool = False, enable_aac: bool = False) -> StreamSource:
    directives: list[StreamDirective] = []
    if force_h264:
        directives.append(H264)
    if enable_aac:
        directives.append(AAC)
    return StreamSource(target=rtsp_url, ffmpeg=bool(directives), directives=tuple(directives))


def opus_restream(camera_name: str) -> StreamSource:
    return StreamSource(target=camera_name, ffmpeg=True, directives=(OPUS,))


def is_opus_restream(source: StreamSource, camera_name: str) -> bool:
    return not source.is_rtsp and source.target == camera_name and source.has(OPUS)
