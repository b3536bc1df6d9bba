"""Browser page for capturing and browsing photos."""

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["ui"])


@router.get("/ui", response_class=HTMLResponse)
async def camera_ui() -> HTMLResponse:
    """Minimal camera UI that consumes the photo API."""
    return HTMLResponse(_CAMERA_UI_HTML)


_CAMERA_UI_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Live Camera Image Storage</title>
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem; }
      .row { margin-bottom: 1rem; }
      video, #preview { max-width: 420px; display: block; margin-bottom: 0.5rem; }
      button { padding: 0.4rem 0.8rem; margin-right: 0.5rem; }
      .grid { display: flex; flex-wrap: wrap; gap: 1rem; }
      .card { width: 220px; background: #f6f6f6; padding: 0.5rem; }
      .card img { width: 100%; height: 150px; object-fit: cover; }
      .error { color: #b91c1c; }
    </style>
  </head>
  <body>
    <h1>Live Camera Image Storage</h1>
    <div class="row">
      Your User ID: <code id="user-id"></code>
    </div>
    <div class="row">
      <button id="start" onclick="startCamera()">Start Camera</button>
      <button id="capture" onclick="capturePhoto()" disabled>Capture Photo</button>
      <button id="stop" onclick="stopCamera()" disabled>Stop Camera</button>
      <button id="save" onclick="savePhoto()" disabled>Save Image</button>
    </div>
    <video id="video" autoplay playsinline muted hidden></video>
    <canvas id="canvas" hidden></canvas>
    <img id="preview" alt="Captured Preview" hidden />
    <p id="message"></p>
    <h2>My Saved Pictures</h2>
    <div id="photos" class="grid"></div>
    <script>
      const PLACEHOLDER = 'https://placehold.co/400x300/CCCCCC/000000?text=Image+Error';
      let userId = localStorage.getItem('camera-vault-user');
      if (!userId) {
        userId = 'user-' + Math.random().toString(36).slice(2, 11);
        localStorage.setItem('camera-vault-user', userId);
      }
      document.getElementById('user-id').textContent = userId;
      let stream = null;
      let captured = null;
      let loading = false;

      function photosUrl() {
        return '/users/' + encodeURIComponent(userId) + '/photos';
      }

      function setMessage(text, isError) {
        const el = document.getElementById('message');
        el.textContent = text;
        el.className = isError ? 'error' : '';
      }

      function setLoading(value) {
        loading = value;
        document.getElementById('save').disabled = value || !captured;
        document.querySelectorAll('.delete').forEach(b => { b.disabled = value; });
      }

      async function startCamera() {
        setMessage('Starting camera...');
        try {
          stream = await navigator.mediaDevices.getUserMedia({ video: true });
          const video = document.getElementById('video');
          video.srcObject = stream;
          video.hidden = false;
          document.getElementById('capture').disabled = false;
          document.getElementById('stop').disabled = false;
          setMessage('Camera active.');
        } catch (err) {
          const reason = 'Error accessing camera: ' + err.message;
          setMessage(reason + '. Please allow camera access.', true);
        }
      }

      function stopCamera() {
        if (stream) { stream.getTracks().forEach(track => track.stop()); }
        stream = null;
        captured = null;
        document.getElementById('video').hidden = true;
        document.getElementById('preview').hidden = true;
        document.getElementById('capture').disabled = true;
        document.getElementById('stop').disabled = true;
        document.getElementById('save').disabled = true;
      }

      function capturePhoto() {
        const video = document.getElementById('video');
        const canvas = document.getElementById('canvas');
        canvas.width = video.videoWidth;
        canvas.height = video.videoHeight;
        canvas.getContext('2d').drawImage(video, 0, 0, canvas.width, canvas.height);
        captured = canvas.toDataURL('image/jpeg', 0.9);
        const preview = document.getElementById('preview');
        preview.src = captured;
        preview.hidden = false;
        document.getElementById('save').disabled = loading;
        setMessage('Photo captured!');
      }

      async function savePhoto() {
        if (!captured) { setMessage('Please capture a photo first.', true); return; }
        setLoading(true);
        setMessage('Saving image...');
        const res = await fetch(photosUrl(), {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify({ image_data: captured })
        });
        setLoading(false);
        if (!res.ok) {
          const body = await res.json();
          setMessage('Error saving image: ' + body.detail, true);
          return;
        }
        stopCamera();
        setMessage('Image saved successfully!');
        await loadPhotos();
      }

      async function deletePhoto(photoId) {
        setLoading(true);
        setMessage('Deleting image...');
        const res = await fetch(
          photosUrl() + '/' + encodeURIComponent(photoId),
          { method: 'DELETE' }
        );
        setLoading(false);
        if (res.ok || res.status === 404) {
          setMessage('Image deleted successfully!');
        } else {
          const body = await res.json();
          setMessage('Error deleting image: ' + body.detail, true);
        }
        await loadPhotos();
      }

      async function loadPhotos() {
        const res = await fetch(photosUrl());
        const container = document.getElementById('photos');
        if (!res.ok) {
          const body = await res.json();
          setMessage('Error fetching images: ' + body.detail, true);
          return;
        }
        const data = await res.json();
        container.innerHTML = '';
        if (data.photos.length === 0) {
          container.textContent = 'No images saved yet. Take one!';
          return;
        }
        for (const photo of data.photos) {
          const card = document.createElement('div');
          card.className = 'card';
          const img = document.createElement('img');
          img.src = photo.src;
          img.onerror = () => { img.onerror = null; img.src = PLACEHOLDER; };
          const stamp = document.createElement('p');
          stamp.textContent = new Date(photo.created_at).toLocaleString();
          const button = document.createElement('button');
          button.className = 'delete';
          button.textContent = 'Delete';
          button.disabled = loading;
          button.onclick = () => deletePhoto(photo.id);
          card.append(img, stamp, button);
          container.appendChild(card);
        }
      }

      loadPhotos();
    </script>
  </body>
</html>
"""
