# services/ui_service/app/main.py

import gradio as gr
import fastapi
from contextlib import asynccontextmanager
from typing import Optional
from core.config import settings, logger as core_logger
from .alerts import ALERT_CSS
from .client import SelectedFile
from .sessions import UploadSessions, EMPTY_ALERT_CONTAINER

# Setup logger
logger = core_logger.getChild("UIService")

# One presenter and upload client per browser session
sessions = UploadSessions()


# --- Gradio Interface Functions ---

async def upload_bundle_ui(file_path: Optional[str], request: gr.Request) -> str:
    """Handles the Upload! button: sends the picked file (if any) and re-renders this session's alerts."""
    upload_client = sessions.client_for(request.session_hash)
    selected = SelectedFile.from_path(file_path) if file_path else None
    await upload_client.request_upload(selected)
    return upload_client.presenter.render_html()


def render_alerts(request: gr.Request) -> str:
    return sessions.render(request.session_hash)


def end_session(request: gr.Request) -> None:
    sessions.end(request.session_hash)


# --- Build Gradio Interface ---
max_size_mb = settings.MAX_UPLOAD_SIZE_BYTES // 1_000_000

with gr.Blocks(theme=gr.themes.Soft(), title="JS Bundle Upload", css=ALERT_CSS) as demo:
    alert_box = gr.HTML(value=EMPTY_ALERT_CONTAINER)
    gr.Markdown("### Single JS Bundle Upload")
    gr.Markdown(f"Upload Size: ( Max {max_size_mb}MB )")
    with gr.Column():
        gr.Markdown("Please upload a bundle JS")
        bundle_file = gr.File(label="Bundle", file_types=[".js", ".jsx"], type="filepath")
        upload_button = gr.Button("Upload!", variant="primary")

    # --- Connect UI elements to functions ---
    upload_button.click(upload_bundle_ui, inputs=[bundle_file], outputs=[alert_box])
    # Alerts expire on their own timers; poll so removals reach the page
    alert_refresh = gr.Timer(1.0)
    alert_refresh.tick(render_alerts, outputs=[alert_box])
    demo.unload(end_session)


# --- Mount Gradio app within FastAPI ---
@asynccontextmanager
async def lifespan(app: fastapi.FastAPI):
    logger.info(f"UI Service started. Upload service: {settings.UPLOAD_SERVICE_URL}")
    yield
    logger.info(f"UI Service shutdown: clearing alerts of {len(sessions)} session(s) and closing upload client.")
    await sessions.aclose()

app = fastapi.FastAPI(lifespan=lifespan)
@app.get("/")
async def root():
    return {"message": "Bundle Upload UI is running. Access the Gradio interface at /ui"}
app = gr.mount_gradio_app(app, demo, path="/ui")
