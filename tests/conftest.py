import json
import socket

import pytest
import pytest_asyncio
import websockets

from astload.config import TestConfig

AUDIO_BYTES = 9000


def terminal_response(*words):
    return json.dumps({
        "header": {"status": 2},
        "payload": {"result": {"ws": [{"cw": [{"w": w}]} for w in words]}},
    })


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "sample.pcm"
    path.write_bytes(bytes(range(256)) * (AUDIO_BYTES // 256) + b"\x01" * (AUDIO_BYTES % 256))
    return path


@pytest.fixture
def make_config(audio_file, tmp_path):
    def factory(ws_url="ws://127.0.0.1:1", **overrides):
        params = dict(
            ws_url=ws_url,
            audio_path=str(audio_file),
            interval_s=0.0,
            connect_timeout_s=2.0,
            results_dir=str(tmp_path / "results"),
        )
        params.update(overrides)
        return TestConfig(**params)
    return factory


@pytest.fixture
def unused_url():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"ws://127.0.0.1:{port}"


@pytest_asyncio.fixture
async def asr_server():
    """Start in-process WebSocket servers; yields a factory returning their URLs."""
    servers = []

    async def start(handler):
        server = await websockets.serve(handler, "127.0.0.1", 0)
        servers.append(server)
        port = server.sockets[0].getsockname()[1]
        return f"ws://127.0.0.1:{port}"

    yield start

    for server in servers:
        server.close()
        await server.wait_closed()


@pytest.fixture
def recognizer_handler():
    """Answer every frame with a partial result and the END frame with the final text."""
    received = []

    async def handler(ws):
        async for raw in ws:
            msg = json.loads(raw)
            received.append(msg)
            await ws.send(json.dumps({"header": {"status": 1}}))
            if msg["header"]["status"] == 2:
                await ws.send("{not json")
                await ws.send(terminal_response("hello", " ", "world"))

    handler.received = received
    return handler
