from prometheus_fastapi_instrumentator import Instrumentator

from worktrack import create_app
from worktrack.core.logging import setup_logging

setup_logging()
app = create_app()
instrumentator = Instrumentator()


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


instrumentator.instrument(app).expose(app)
