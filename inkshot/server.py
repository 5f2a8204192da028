"""HTTP API and web dashboard for inkshot."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response

from . import __version__
from .config import Config
from .errors import BrowserUnavailable, NotFound, ValidationError
from .image_processor import media_type_for
from .models import DEFAULT_HEIGHT, DEFAULT_WIDTH, CaptureResult
from .scheduler import Scheduler
from .service import CaptureService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> CaptureService:
    return request.app.state.service


async def read_json(request: Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return data


def result_response(result: CaptureResult) -> JSONResponse:
    if result.success:
        status_code = 200
    elif result.error_type == BrowserUnavailable.error_type:
        status_code = 503
    else:
        status_code = 400
    return JSONResponse(status_code=status_code, content=result.to_dict())


@router.get("/health")
async def health(service: CaptureService = Depends(get_service)):
    return service.health()


@router.post("/api/screenshot")
async def capture_screenshot(request: Request, service: CaptureService = Depends(get_service)):
    """Capture an arbitrary URL"""
    data = await read_json(request)
    url = data.get('url')
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")

    try:
        width = int(data.get('width') or DEFAULT_WIDTH)
        height = int(data.get('height') or DEFAULT_HEIGHT)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Width and height must be integers")

    result = await service.capture_url(
        url,
        width=width,
        height=height,
        theme=data.get('theme') or 'light',
        output_format=data.get('format') or 'png',
    )
    return result_response(result)


@router.get("/api/screenshot/latest")
async def get_latest_screenshot(service: CaptureService = Depends(get_service)):
    latest = service.latest_screenshot()
    if latest is None:
        raise NotFound("No screenshots available")
    return Response(content=service.get_screenshot(latest.filename), media_type=media_type_for(latest.filename))


@router.get("/api/screenshots")
async def list_screenshots(limit: int = Query(default=20, ge=1), service: CaptureService = Depends(get_service)):
    screenshots = service.list_screenshots(limit)
    return {
        'total': len(screenshots),
        'screenshots': [
            {**s.to_dict(), 'url': f"/api/screenshot/{s.filename}"} for s in screenshots
        ],
    }


@router.post("/api/screenshots/cleanup")
async def cleanup_screenshots(request: Request, service: CaptureService = Depends(get_service)):
    """Run a retention sweep"""
    config: Config = request.app.state.config
    data = await read_json(request) if (await request.body()).strip() else {}
    try:
        max_age_hours = float(data.get('maxAgeHours', config.retention_max_age_hours))
        max_count = int(data.get('maxCount', config.retention_max_count))
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="maxAgeHours and maxCount must be numbers")
    return {'deleted': service.cleanup(max_age_hours, max_count)}


@router.get("/api/screenshot/{filename}")
async def get_screenshot(filename: str, service: CaptureService = Depends(get_service)):
    return Response(content=service.get_screenshot(filename), media_type=media_type_for(filename))


@router.delete("/api/screenshot/{filename}")
async def delete_screenshot(filename: str, service: CaptureService = Depends(get_service)):
    if not service.delete_screenshot(filename):
        raise NotFound("Screenshot not found")
    return {'success': True, 'message': 'Screenshot deleted'}


@router.post("/api/profiles", status_code=201)
async def create_profile(request: Request, service: CaptureService = Depends(get_service)):
    data = await read_json(request)
    return service.profile_store.create(data)


@router.get("/api/profiles")
async def list_profiles(enabled: Optional[bool] = Query(default=None), service: CaptureService = Depends(get_service)):
    profiles = service.profile_store.list(enabled_only=bool(enabled))
    return {'total': len(profiles), 'profiles': profiles}


@router.get("/api/profiles/{profile_id}")
async def get_profile(profile_id: str, service: CaptureService = Depends(get_service)):
    return service.profile_store.get(profile_id)


@router.put("/api/profiles/{profile_id}")
async def update_profile(profile_id: str, request: Request, service: CaptureService = Depends(get_service)):
    data = await read_json(request)
    return service.profile_store.update(profile_id, data)


@router.delete("/api/profiles/{profile_id}")
async def delete_profile(profile_id: str, service: CaptureService = Depends(get_service)):
    if not service.profile_store.delete(profile_id):
        raise NotFound("Profile not found")
    return {'success': True, 'message': 'Profile deleted'}


@router.post("/api/profiles/{profile_id}/capture")
async def capture_profile(profile_id: str, service: CaptureService = Depends(get_service)):
    result = await service.capture_profile(profile_id)
    return result_response(result)


@router.get("/", response_class=HTMLResponse)
async def dashboard():
    """Web dashboard"""
    return HTMLResponse(content=DASHBOARD_HTML)


async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={'error': str(exc)})


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={'errors': exc.errors})


def create_app(config: Optional[Config] = None, service: Optional[CaptureService] = None) -> FastAPI:
    """Build the FastAPI app around an injected config and capture service"""
    config = config or Config()
    service = service or CaptureService.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.initialize()

        scheduler = None
        if config.scheduler_enabled:
            scheduler = Scheduler(service, config.poll_interval,
                                  retention=config.retention if config.retention_auto else None)
            scheduler.start()
        app.state.scheduler = scheduler

        logger.info("=" * 50)
        logger.info(f"inkshot {__version__} started")
        logger.info(f"Data path: {config.data_path}")
        logger.info(f"Home Assistant URL: {config.ha_url}")
        logger.info(f"HA authentication token: {'provided' if config.ha_token else 'not provided'}")
        logger.info(f"Browser ready: {service.renderer.ready}")
        logger.info("=" * 50)

        yield

        logger.info("Shutting down gracefully...")
        if scheduler:
            await scheduler.stop()
        await service.close()

    app = FastAPI(title="inkshot", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization'],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.include_router(router)
    return app


DASHBOARD_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>inkshot</title>
    <style>
        body {
            font-family: Arial, sans-serif;
            margin: 0;
            padding: 20px;
            background: #f5f5f5;
        }
        h1 {
            color: #333;
        }
        .status-bar {
            font-size: 14px;
            color: #666;
            margin-bottom: 20px;
        }
        .tabs {
            display: flex;
            border-bottom: 2px solid #ddd;
            margin-bottom: 20px;
        }
        .tab {
            padding: 10px 20px;
            cursor: pointer;
            background: #fff;
            border: 1px solid #ddd;
            border-bottom: none;
            margin-right: 5px;
        }
        .tab.active {
            background: #007bff;
            color: white;
        }
        .tab-content {
            display: none;
            background: white;
            padding: 20px;
            border-radius: 5px;
            box-shadow: 0 2px 5px rgba(0,0,0,0.1);
        }
        .tab-content.active {
            display: block;
        }
        .card {
            margin-bottom: 20px;
            padding: 15px;
            background: #f9f9f9;
            border-radius: 5px;
        }
        .card img {
            max-width: 100%;
            border: 1px solid #ddd;
            display: block;
        }
        .error {
            color: #c00;
        }
        input, select {
            margin: 5px 10px 10px 0;
            padding: 6px;
        }
    </style>
</head>
<body>
    <h1>inkshot</h1>
    <div class="status-bar">
        Status: <span id="status">Loading...</span> |
        Profiles: <span id="profile-count">0</span>
    </div>

    <div class="tabs">
        <div class="tab active" onclick="showTab('capture')">Capture</div>
        <div class="tab" onclick="showTab('screenshots')">Screenshots</div>
        <div class="tab" onclick="showTab('profiles')">Profiles</div>
    </div>

    <div id="capture" class="tab-content active">
        <input id="url" placeholder="http://homeassistant.local:8123/lovelace/default" size="50">
        <input id="width" type="number" value="800">
        <input id="height" type="number" value="480">
        <select id="theme"><option>light</option><option>dark</option></select>
        <select id="format"><option>png</option><option>jpeg</option><option>bmp3</option></select>
        <button onclick="capture()">Capture</button>
        <div id="capture-result"></div>
    </div>

    <div id="screenshots" class="tab-content">
        <div id="screenshot-list"></div>
    </div>

    <div id="profiles" class="tab-content">
        <div id="profile-list"></div>
    </div>

    <script>
        function showTab(name) {
            document.querySelectorAll('.tab-content').forEach(el => el.classList.remove('active'));
            document.querySelectorAll('.tab').forEach(el => el.classList.remove('active'));
            document.getElementById(name).classList.add('active');
            event.target.classList.add('active');
            if (name === 'screenshots') loadScreenshots();
            if (name === 'profiles') loadProfiles();
        }

        async function updateStatus() {
            const health = await (await fetch('/health')).json();
            document.getElementById('status').textContent = health.browser_ready ? 'ready' : 'browser unavailable';
            document.getElementById('profile-count').textContent = health.profiles;
        }

        async function capture() {
            const body = {
                url: document.getElementById('url').value,
                width: parseInt(document.getElementById('width').value),
                height: parseInt(document.getElementById('height').value),
                theme: document.getElementById('theme').value,
                format: document.getElementById('format').value
            };
            const response = await fetch('/api/screenshot', {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify(body)
            });
            const result = await response.json();
            const target = document.getElementById('capture-result');
            if (result.success) {
                target.innerHTML = `<div class="card"><img src="/api/screenshot/${result.filename}"></div>`;
            } else {
                target.innerHTML = `<div class="error">${result.error || result.detail}</div>`;
            }
        }

        async function loadScreenshots() {
            const data = await (await fetch('/api/screenshots?limit=20')).json();
            document.getElementById('screenshot-list').innerHTML = data.screenshots.map(s => `
                <div class="card">
                    <h3>${s.filename}</h3>
                    <div>${s.size} bytes, ${s.created}</div>
                    <img src="${s.url}">
                </div>`).join('');
        }

        async function captureProfile(id) {
            await fetch(`/api/profiles/${id}/capture`, {method: 'POST'});
            loadProfiles();
        }

        async function loadProfiles() {
            const data = await (await fetch('/api/profiles')).json();
            document.getElementById('profile-list').innerHTML = data.profiles.map(p => `
                <div class="card">
                    <h3>${p.name}</h3>
                    <div>${p.url} (${p.width}x${p.height}, ${p.theme}, ${p.outputFormat})</div>
                    <div>Refresh: ${p.refreshInterval ? p.refreshInterval + 's' : 'manual'} |
                         Last run: ${p.lastRun || 'never'} | Failures: ${p.failureCount}</div>
                    <button onclick="captureProfile('${p.id}')">Capture now</button>
                </div>`).join('');
        }

        updateStatus();
        setInterval(updateStatus, 10000);
    </script>
</body>
</html>
"""
