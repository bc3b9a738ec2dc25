"""FastAPI application factory."""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import (
    Depends,
    FastAPI,
    File,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.responses import HTMLResponse, RedirectResponse

from photodump.api.schemas import ActivityPing, ProfileUpdate
from photodump.app_logging import configure_logging
from photodump.containers import AppContainer
from photodump.domain.models import AuthSession
from photodump.domain.models import UploadFile as FilePayload
from photodump.services.controller import AppController
from photodump.services.sessions import ACTIVITY_EVENTS

SESSION_COOKIE = "photodump_session"


def _get_controller(request: Request) -> AppController:
    container: AppContainer = request.app.state.container
    return container.controller


async def require_session(
    request: Request,
    controller: AppController = Depends(_get_controller),
) -> AuthSession:
    """Ensure the caller owns the signed-in session."""
    session = controller.session
    if session is None or not controller.is_authorized(
        request.cookies.get(SESSION_COOKIE)
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return session


async def _to_payload(upload: UploadFile) -> FilePayload:
    return FilePayload(
        name=upload.filename or "upload",
        content=await upload.read(),
        content_type=upload.content_type,
    )


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        try:
            await state_container.watchdog.start()
        except Exception:
            logger.exception("Failed to start session watchdog")
        subscription = state_container.watchdog.subscribe()
        consumer = asyncio.create_task(state_container.controller.run(subscription))
        yield
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer
        subscription.unsubscribe()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        """Single page user interface."""
        return HTMLResponse(
            _INDEX_HTML.replace("__ACTIVITY_EVENTS__", json.dumps(ACTIVITY_EVENTS))
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/state")
    async def state(
        request: Request,
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """Return the renderable application state for this browser."""
        if controller.is_authorized(request.cookies.get(SESSION_COOKIE)):
            return controller.snapshot()
        return controller.public_snapshot()

    @app.get("/auth/sign-in")
    async def sign_in(
        controller: AppController = Depends(_get_controller),
    ) -> RedirectResponse:
        """Redirect to the identity provider."""
        url = await controller.sign_in()
        return RedirectResponse(url or "/", status_code=status.HTTP_303_SEE_OTHER)

    @app.get("/auth/callback")
    async def auth_callback(
        code: str | None = None,
        error_description: str | None = None,
        controller: AppController = Depends(_get_controller),
    ) -> RedirectResponse:
        """Complete the OAuth redirect flow."""
        response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
        if code:
            token = await controller.complete_sign_in(code)
            if token is not None:
                response.set_cookie(
                    SESSION_COOKIE,
                    token,
                    httponly=True,
                    samesite="lax",
                    secure=container.settings.public_base_url.startswith("https://"),
                )
        elif error_description:
            logger.warning("Provider rejected sign-in: %s", error_description)
            controller.reject_sign_in(error_description)
        return response

    @app.post("/auth/sign-out", dependencies=[Depends(require_session)])
    async def sign_out(
        request: Request,
        response: Response,
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """End the current session."""
        await controller.sign_out()
        if controller.session is None:
            controller.revoke(request.cookies.get(SESSION_COOKIE))
            response.delete_cookie(SESSION_COOKIE)
        return controller.snapshot()

    @app.post("/activity", dependencies=[Depends(require_session)])
    async def activity(
        ping: ActivityPing,
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, str]:
        """Reset the inactivity timer."""
        controller.watchdog.record_activity(ping.event)
        return {"status": "ok"}

    @app.get("/images", dependencies=[Depends(require_session)])
    async def list_images(
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """Return the loaded gallery."""
        return {"images": controller.snapshot()["images"]}

    @app.post("/images/refresh", dependencies=[Depends(require_session)])
    async def refresh_images(
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """Reload the gallery with fresh signed URLs."""
        await controller.refresh_images()
        return controller.snapshot()

    @app.post("/images", dependencies=[Depends(require_session)])
    async def upload_images(
        files: list[UploadFile] = File(...),
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """Upload one or more photos."""
        payloads = [await _to_payload(upload) for upload in files]
        await controller.upload_images(payloads)
        return controller.snapshot()

    @app.delete("/images/{image_id}", dependencies=[Depends(require_session)])
    async def delete_image(
        image_id: str,
        confirm: bool = False,
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """Delete a photo once the user has confirmed."""
        found = await controller.delete_image(image_id, lambda _image: confirm)
        if not found:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return controller.snapshot()

    @app.patch("/profile", dependencies=[Depends(require_session)])
    async def update_profile(
        update: ProfileUpdate,
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """Change the display name."""
        await controller.update_display_name(update.display_name)
        return controller.snapshot()

    @app.post("/profile/avatar", dependencies=[Depends(require_session)])
    async def update_avatar(
        file: UploadFile = File(...),
        controller: AppController = Depends(_get_controller),
    ) -> dict[str, object]:
        """Replace the avatar image."""
        await controller.update_avatar(await _to_payload(file))
        return controller.snapshot()

    return app


_INDEX_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>PhotoDump</title>
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem;
             background: #EEE9DA; color: #6096B4; }
      .panel { border: 1px solid #93BFCF; padding: 1rem; margin-bottom: 1rem; }
      .error { border-color: #f87171; color: #dc2626; }
      .grid { display: grid; grid-template-columns: repeat(auto-fill, 220px); gap: 1rem; }
      .tile { position: relative; user-select: none; -webkit-touch-callout: none; }
      .tile canvas { width: 100%; cursor: pointer; }
      .tile button { position: absolute; top: 4px; right: 4px; }
      #viewer { position: fixed; inset: 0; background: rgba(96,150,180,0.8);
                display: none; align-items: center; justify-content: center; }
      #viewer canvas { max-width: 95vw; max-height: 95vh; }
      .dropzone.dragging { border-style: dashed; background: #BDCDD6; }
      img.avatar { width: 64px; height: 64px; border-radius: 50%; object-fit: cover; }
    </style>
  </head>
  <body>
    <h1>PhotoDump</h1>
    <p>Securely preview your photos.</p>
    <div id="app">Loading...</div>
    <div id="viewer"><canvas id="viewer-canvas"></canvas></div>
    <script>
      const ACTIVITY_EVENTS = __ACTIVITY_EVENTS__;
      const tiles = new Map();
      let state = null;
      let stateText = '';
      let lastPing = 0;

      function escapeHtml(value) {
        return String(value ?? '').replace(/[&<>"']/g, (ch) => ({
          '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'
        })[ch]);
      }

      function drawImage(canvas, url) {
        const ctx = canvas.getContext('2d');
        const img = new Image();
        img.crossOrigin = 'Anonymous';
        img.onload = () => {
          canvas.width = img.naturalWidth;
          canvas.height = img.naturalHeight;
          ctx.drawImage(img, 0, 0);
        };
        img.onerror = () => {
          canvas.width = 300;
          canvas.height = 200;
          ctx.fillStyle = '#EEE9DA';
          ctx.fillRect(0, 0, 300, 200);
          ctx.fillStyle = '#6096B4';
          ctx.textAlign = 'center';
          ctx.fillText('Image failed to load', 150, 100);
        };
        img.src = url;
      }

      async function call(method, path, body) {
        await fetch(path, { method, body });
        await refresh();
      }

      async function refresh(poll = false) {
        const res = await fetch('/state');
        const text = await res.text();
        if (poll && (text === stateText || editing())) return;
        stateText = text;
        state = JSON.parse(text);
        render();
      }

      function editing() {
        const active = document.activeElement;
        return Boolean(active && active.closest && active.closest('#profile-form'));
      }

      function uploadFiles(files) {
        const images = Array.from(files).filter((file) => file.type.startsWith('image/'));
        if (!images.length || state.is_loading) return;
        const body = new FormData();
        for (const file of images) body.append('files', file);
        call('POST', '/images', body);
      }

      function render() {
        const app = document.getElementById('app');
        if (!state.authenticated) {
          tiles.clear();
          app.innerHTML = '<a href="/auth/sign-in"><button ' +
            (state.is_signing_in ? 'disabled>Signing in...' : '>Sign in with Google') +
            '</button></a>' + errorPanel();
          return;
        }
        const profile = state.profile;
        app.innerHTML = `
          <button id="sign-out">Sign Out</button>
          <div class="panel">
            <h3>Your Profile</h3>
            ${profile ? `
              ${profile.photo_url ? `<img class="avatar" src="${escapeHtml(profile.photo_url)}" />` : ''}
              ${state.is_uploading_avatar ? '<em>Uploading...</em>' : ''}
              <p><strong>User Name:</strong> ${escapeHtml(profile.display_name || 'Not set')}</p>
              <p><strong>Email:</strong> ${escapeHtml(profile.email)}</p>
              <form id="profile-form">
                <input name="display_name" value="${escapeHtml(profile.display_name)}" required />
                <button type="submit">Save</button>
              </form>
              <input type="file" id="avatar" accept="image/png, image/jpeg, image/gif"
                ${state.is_uploading_avatar ? 'disabled' : ''} />
            ` : 'Loading profile...'}
          </div>
          <div class="panel dropzone" id="dropzone">
            <p>Drag and drop photos here, or choose files.</p>
            <input type="file" id="upload" accept="image/*" multiple
              ${state.is_loading ? 'disabled' : ''} />
          </div>
          ${errorPanel()}
          <div class="panel">This tool makes it harder to download images,
            but no browser-based protection is foolproof.</div>
          ${state.is_loading ? '<p>Loading images...</p>' :
            state.images.length ? '<div class="grid" id="grid"></div>' :
            '<p>You have not uploaded any photos yet.</p>'}`;
        document.getElementById('sign-out').onclick = () => call('POST', '/auth/sign-out');
        const form = document.getElementById('profile-form');
        if (form) {
          form.onsubmit = (e) => {
            e.preventDefault();
            const name = new FormData(form).get('display_name');
            document.activeElement.blur();
            fetch('/profile', {
              method: 'PATCH',
              headers: { 'Content-Type': 'application/json' },
              body: JSON.stringify({ display_name: name })
            }).then(() => refresh());
          };
          document.getElementById('avatar').onchange = (e) => {
            const body = new FormData();
            body.append('file', e.target.files[0]);
            call('POST', '/profile/avatar', body);
          };
        }
        document.getElementById('upload').onchange = (e) => uploadFiles(e.target.files);
        const dropzone = document.getElementById('dropzone');
        dropzone.ondragover = (e) => {
          e.preventDefault();
          dropzone.classList.add('dragging');
        };
        dropzone.ondragleave = () => dropzone.classList.remove('dragging');
        dropzone.ondrop = (e) => {
          e.preventDefault();
          dropzone.classList.remove('dragging');
          uploadFiles(e.dataTransfer.files);
        };
        renderGrid(document.getElementById('grid'));
      }

      function renderGrid(grid) {
        const ids = new Set(state.images.map((image) => image.id));
        for (const id of tiles.keys()) {
          if (!ids.has(id)) tiles.delete(id);
        }
        if (!grid) return;
        for (const image of state.images) {
          let tile = tiles.get(image.id);
          if (!tile) {
            tile = document.createElement('div');
            tile.className = 'tile';
            tile.oncontextmenu = (e) => e.preventDefault();
            const canvas = document.createElement('canvas');
            canvas.onclick = () => openViewer(canvas);
            drawImage(canvas, image.public_url);
            const del = document.createElement('button');
            del.textContent = 'Delete';
            del.onclick = () => {
              if (window.confirm('Are you sure you want to permanently delete this photo?')) {
                call('DELETE', `/images/${encodeURIComponent(image.id)}?confirm=true`);
              }
            };
            tile.append(canvas, del);
            tiles.set(image.id, tile);
          }
          grid.append(tile);
        }
      }

      function errorPanel() {
        return state.error ?
          `<div class="panel error"><h3>Error</h3><p>${escapeHtml(state.error)}</p></div>` : '';
      }

      function openViewer(source) {
        const target = document.getElementById('viewer-canvas');
        target.width = source.width;
        target.height = source.height;
        target.getContext('2d').drawImage(source, 0, 0);
        document.getElementById('viewer').style.display = 'flex';
      }

      function closeViewer() {
        document.getElementById('viewer').style.display = 'none';
      }

      document.getElementById('viewer').onclick = closeViewer;
      document.getElementById('viewer').oncontextmenu = (e) => e.preventDefault();
      window.addEventListener('keydown', (e) => { if (e.key === 'Escape') closeViewer(); });

      for (const event of ACTIVITY_EVENTS) {
        window.addEventListener(event, () => {
          const now = Date.now();
          if (!state || !state.authenticated || now - lastPing < 5000) return;
          lastPing = now;
          fetch('/activity', {
            method: 'POST',
            headers: { 'Content-Type': 'application/json' },
            body: JSON.stringify({ event })
          });
        }, { passive: true });
      }

      refresh();
      setInterval(() => refresh(true), 30000);
    </script>
  </body>
</html>
"""
