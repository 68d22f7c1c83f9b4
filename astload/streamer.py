"""
Audio Frame Streamer

Slices an audio file into fixed-size frames and sends each one as a JSON
request envelope, paced to emulate real-time audio arrival.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from websockets.exceptions import WebSocketException

from .envelope import (
    DEFAULT_APP_ID,
    DEFAULT_BIZ_ID,
    FrameStatus,
    build_request,
)
from .errors import StreamingError

logger = logging.getLogger(__name__)

DEFAULT_FRAME_SIZE = 4096
DEFAULT_INTERVAL_S = 0.040


@dataclass(frozen=True)
class Frame:
    """One slice of the audio source."""
    index: int
    status: FrameStatus
    data: bytes


def read_audio(audio_path: Union[str, Path]) -> bytes:
    """Read the whole audio file. Raises StreamingError if it is missing, unreadable or empty."""
    path = Path(audio_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise StreamingError(f"audio file not readable: {path} ({e})") from e
    if not data:
        raise StreamingError(f"audio file is empty: {path}")
    return data


def iter_frames(audio: bytes, frame_size: int = DEFAULT_FRAME_SIZE) -> Iterator[Frame]:
    """
    Yield the audio as frames, slicing lazily.

    START for the first frame, END for the last (remaining bytes <= frame_size),
    CONTINUE in between. Audio no larger than frame_size produces a single
    END frame.
    """
    if frame_size <= 0:
        raise ValueError(f"frame_size must be positive (got {frame_size})")
    if not audio:
        raise StreamingError("audio is empty")

    for index, offset in enumerate(range(0, len(audio), frame_size)):
        if len(audio) - offset <= frame_size:
            status = FrameStatus.END
        elif index == 0:
            status = FrameStatus.START
        else:
            status = FrameStatus.CONTINUE
        yield Frame(index=index, status=status, data=audio[offset:offset + frame_size])


async def stream_audio(ws,
                       audio_path: Union[str, Path],
                       *,
                       trace_id: str,
                       frame_size: int = DEFAULT_FRAME_SIZE,
                       interval_s: float = DEFAULT_INTERVAL_S,
                       app_id: str = DEFAULT_APP_ID,
                       biz_id: str = DEFAULT_BIZ_ID,
                       engine_params: Optional[Dict[str, Any]] = None) -> int:
    """
    Send the audio file over an open connection, one envelope per frame.

    Sleeps interval_s between frames but not after the END frame. Returns the
    number of frames sent. Raises StreamingError on read or send failure.
    """
    frames_sent = 0

    audio = await asyncio.to_thread(read_audio, audio_path)

    for frame in iter_frames(audio, frame_size):
        envelope = build_request(
            trace_id,
            frame.status,
            frame.data,
            app_id=app_id,
            biz_id=biz_id,
            engine_params=engine_params,
        )

        try:
            await ws.send(envelope.to_json())
        except (OSError, WebSocketException) as e:
            raise StreamingError(f"failed to send frame {frame.index}: {e}") from e

        frames_sent += 1
        logger.debug(f"[{trace_id}] sent frame {frame.index} status={frame.status.name} ({len(frame.data)} bytes)")

        if frame.status is FrameStatus.END:
            break
        await asyncio.sleep(interval_s)

    logger.debug(f"[{trace_id}] finished streaming {frames_sent} frames")
    return frames_sent
