"""Shared fixtures: a stub renderer and stores rooted in tmp_path."""
import asyncio
import io
from typing import Dict, Optional

import pytest
from PIL import Image

from inkshot.capture_store import CaptureStore
from inkshot.profile_store import ProfileStore
from inkshot.renderer import Renderer, RenderSession
from inkshot.service import CaptureService


def make_png(width: int, height: int, color=(200, 200, 200)) -> bytes:
    output = io.BytesIO()
    Image.new('RGB', (width, height), color).save(output, format='PNG')
    return output.getvalue()


class StubSession(RenderSession):

    def __init__(self, renderer, width, height, theme, headers):
        self.renderer = renderer
        self.width = width
        self.height = height
        self.theme = theme
        self.headers = headers
        self.url = None
        self.closed = False

    async def navigate(self, url: str, timeout: float) -> None:
        self.url = url
        self.renderer.active += 1
        self.renderer.peak = max(self.renderer.peak, self.renderer.active)
        await asyncio.sleep(self.renderer.delay)
        if self.renderer.fail_with is not None:
            self.renderer.active -= 1
            raise self.renderer.fail_with

    async def snapshot(self) -> bytes:
        self.renderer.active -= 1
        if self.renderer.snapshot_error is not None:
            raise self.renderer.snapshot_error
        return make_png(self.width, self.height)

    async def close(self) -> None:
        self.closed = True


class StubRenderer(Renderer):
    """Renders a flat grey PNG of the viewport size and counts concurrent renders"""

    def __init__(self, ready: bool = True, delay: float = 0):
        self._ready = ready
        self.delay = delay
        self.fail_with: Optional[Exception] = None
        self.snapshot_error: Optional[Exception] = None
        self.active = 0
        self.peak = 0
        self.sessions = []

    @property
    def ready(self) -> bool:
        return self._ready

    async def initialize(self) -> bool:
        return self._ready

    async def close(self) -> None:
        self._ready = False

    async def open_session(self, width: int, height: int, theme: str = 'light',
                           headers: Optional[Dict[str, str]] = None) -> RenderSession:
        session = StubSession(self, width, height, theme, headers)
        self.sessions.append(session)
        return session


@pytest.fixture
def renderer():
    return StubRenderer()


@pytest.fixture
def capture_store(tmp_path):
    store = CaptureStore(tmp_path / 'screenshots')
    store.ensure_root()
    return store


@pytest.fixture
def profile_store(tmp_path):
    store = ProfileStore(tmp_path / 'profiles.json')
    store.load()
    return store


@pytest.fixture
def service(renderer, capture_store, profile_store):
    return CaptureService(renderer, capture_store, profile_store, settle_delay=0)
