"""Capture pipeline: render a page, convert it and store the result."""
import asyncio
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from . import __version__
from .capture_store import CaptureStore
from .config import Config
from .errors import BrowserUnavailable, InkshotError, UnsupportedFormat
from .image_processor import DEFAULT_BIT_DEPTH, DEFAULT_JPEG_QUALITY, ImageProcessor, extension_for
from .models import (DEFAULT_HEIGHT, DEFAULT_WIDTH, OUTPUT_FORMATS, CaptureRequest, CaptureResult,
                     StoredImage, isoformat, utc_now)
from .profile_store import ProfileStore
from .renderer import PlaywrightRenderer, Renderer
from .throttle import CaptureThrottle

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds
DEFAULT_SETTLE_DELAY = 1.0  # seconds


class CaptureService:
    """Runs captures through one shared renderer, bounded by one throttle.

    Capture failures never raise out of ``capture``; they come back as a
    failed CaptureResult tagged with an error type. Only local persistence
    faults (OSError from the capture store) propagate.
    """

    def __init__(self, renderer: Renderer, capture_store: CaptureStore, profile_store: ProfileStore,
                 throttle: Optional[CaptureThrottle] = None, token: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT, settle_delay: float = DEFAULT_SETTLE_DELAY,
                 image_quality: int = DEFAULT_JPEG_QUALITY, bit_depth: int = DEFAULT_BIT_DEPTH):
        self.renderer = renderer
        self.capture_store = capture_store
        self.profile_store = profile_store
        self.throttle = throttle or CaptureThrottle()
        self.token = token or None
        self.timeout = timeout
        self.settle_delay = settle_delay
        self.image_quality = image_quality
        self.bit_depth = bit_depth

    @classmethod
    def from_config(cls, config: Config, renderer: Optional[Renderer] = None) -> 'CaptureService':
        return cls(
            renderer=renderer or PlaywrightRenderer(),
            capture_store=CaptureStore(config.screenshot_path),
            profile_store=ProfileStore(config.profiles_path),
            throttle=CaptureThrottle(config.max_concurrent),
            token=config.ha_token,
            timeout=config.capture_timeout,
            settle_delay=config.settle_delay,
            image_quality=config.image_quality,
            bit_depth=config.bit_depth,
        )

    async def initialize(self) -> bool:
        """Prepare storage and start the renderer; returns whether the renderer is ready"""
        self.capture_store.ensure_root()
        self.profile_store.load()
        initialized = await self.renderer.initialize()
        if not initialized:
            logger.warning("Browser initialization failed, continuing anyway...")
        return initialized

    async def close(self):
        await self.renderer.close()

    async def capture(self, request: CaptureRequest) -> CaptureResult:
        if not self.renderer.ready:
            return CaptureResult.failed(request.url, "Browser not initialized", BrowserUnavailable.error_type)

        if request.output_format not in OUTPUT_FORMATS:
            return CaptureResult.failed(request.url, f"Unsupported output format: {request.output_format}",
                                        UnsupportedFormat.error_type)

        errors = request.validate()
        if errors:
            return CaptureResult.failed(request.url, "; ".join(errors), 'validation_error')

        headers = {'Authorization': f'Bearer {request.token}'} if request.token else None
        logger.info(f"Capturing {request.url} at {request.width}x{request.height} "
                    f"(theme={request.theme}, format={request.output_format})")
        start_time = time.monotonic()

        await self.throttle.acquire()
        session = None
        try:
            try:
                session = await self.renderer.open_session(request.width, request.height, request.theme, headers)
                await session.navigate(request.url, self.timeout)
                # Let client-side rendering finish
                await asyncio.sleep(self.settle_delay)
                raw = await session.snapshot()
                data = ImageProcessor.convert(raw, request.output_format, self.bit_depth, self.image_quality)
            except InkshotError as e:
                logger.error(f"Capture failed for {request.url}: {e}")
                return CaptureResult.failed(request.url, str(e), e.error_type)
            except Exception as e:
                logger.error(f"Capture failed for {request.url}: {e}")
                return CaptureResult.failed(request.url, str(e))

            filename = self.capture_store.save(data, extension_for(request.output_format))
        finally:
            await self.throttle.release()
            if session is not None:
                await self._close_session(session)

        logger.info(f"Captured {request.url} -> {filename} in {time.monotonic() - start_time:.2f}s")
        return CaptureResult(
            success=True,
            url=request.url,
            filename=filename,
            size=len(data),
            width=request.width,
            height=request.height,
            format=request.output_format,
            timestamp=isoformat(utc_now()),
        )

    async def _close_session(self, session):
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Failed to close render session: {e}")

    async def capture_url(self, url: str, width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT,
                          theme: str = 'light', output_format: str = 'png') -> CaptureResult:
        """Ad hoc capture using the configured bearer token"""
        return await self.capture(CaptureRequest(url=url, width=width, height=height, theme=theme,
                                                 output_format=output_format, token=self.token))

    async def capture_profile(self, profile_id: str) -> CaptureResult:
        """Capture a stored profile and record the outcome in its run history.

        Raises NotFound for an unknown profile id.
        """
        profile = self.profile_store.get(profile_id)
        request = CaptureRequest(
            url=profile['url'],
            width=profile['width'],
            height=profile['height'],
            theme=profile['theme'],
            output_format=profile['outputFormat'],
            token=self.token,
        )

        try:
            result = await self.capture(request)
        except OSError as e:
            self.profile_store.record_capture(profile_id, False, str(e))
            raise

        self.profile_store.record_capture(profile_id, result.success, result.error)
        return result

    async def capture_due(self, now: Optional[datetime] = None) -> Dict[str, CaptureResult]:
        """Capture every profile whose refresh interval has elapsed"""
        due = self.profile_store.due(now)
        if not due:
            return {}

        logger.info(f"Capturing {len(due)} due profiles: {', '.join(p['name'] for p in due)}")
        results = await asyncio.gather(*(self.capture_profile(p['id']) for p in due), return_exceptions=True)

        final_results = {}
        for profile, result in zip(due, results):
            if isinstance(result, Exception):
                logger.error(f"Scheduled capture failed for profile {profile['id']}: {result}")
                result = CaptureResult.failed(profile['url'], str(result))
            final_results[profile['id']] = result
        return final_results

    def list_screenshots(self, limit: Optional[int] = 20) -> List[StoredImage]:
        return self.capture_store.list(limit)

    def get_screenshot(self, filename: str) -> bytes:
        return self.capture_store.get(filename)

    def delete_screenshot(self, filename: str) -> bool:
        return self.capture_store.delete(filename)

    def latest_screenshot(self) -> Optional[StoredImage]:
        screenshots = self.capture_store.list(1)
        return screenshots[0] if screenshots else None

    def cleanup(self, max_age_hours: float, max_count: int) -> int:
        return self.capture_store.retain(max_age_hours, max_count)

    def health(self) -> dict:
        return {
            'status': 'ok',
            'timestamp': isoformat(utc_now()),
            'version': __version__,
            'browser_ready': self.renderer.ready,
            'profiles': len(self.profile_store.profiles),
            'captures_in_flight': self.throttle.in_flight,
        }
