import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

try:
    load_dotenv()
except OSError as exc:
    # Prevent startup from crashing if .env is unreadable in the container.
    print(f"[clipcraft] Warning: could not load .env ({exc})")

from clipcraft.web.api import router as api_router

app = FastAPI(title="ClipCraft Download Server")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

# Retrieved sources and clips; check_dir=False because the directory is created lazily on first use
STORAGE_DIR = os.getenv("STORAGE_DIR", "downloads")
app.mount("/downloads", StaticFiles(directory=STORAGE_DIR, check_dir=False), name="downloads")

# Mount frontend static files last (catch-all)
FRONTEND_DIR = os.getenv("FRONTEND_DIR", "")
ASSETS_DIR = os.path.join(FRONTEND_DIR, "assets") if FRONTEND_DIR else ""

if ASSETS_DIR and os.path.isdir(ASSETS_DIR):
    app.mount("/assets", StaticFiles(directory=ASSETS_DIR), name="assets")


@app.get("/{full_path:path}")
async def catch_all(full_path: str):
    if FRONTEND_DIR:
        root = os.path.abspath(FRONTEND_DIR)
        potential_path = os.path.abspath(os.path.join(root, full_path))
        if potential_path.startswith(root + os.sep) and os.path.isfile(potential_path):
            return FileResponse(potential_path)
        index_path = os.path.join(root, "index.html")
        if os.path.isfile(index_path):
            return FileResponse(index_path)
    return {"message": "ClipCraft API is running. Set FRONTEND_DIR to serve the editor UI."}
