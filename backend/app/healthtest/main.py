from fastapi import FastAPI

from healthtest.api.errors import register_error_handlers
from healthtest.api.v1.routes import router as v1_router

app = FastAPI(title="HealthTest")
app.include_router(v1_router)
register_error_handlers(app)


@app.get("/healthz", include_in_schema=False)
def healthz():
    return {"ok": True}
