from app.api.routes import router
from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.core.database import engine
from app.core.logging_setup import configure_logging
from app.models.disposal_records import create_tables


@asynccontextmanager
async def lifespan(app: FastAPI):
	"""Configure logging and create the disposal tables if missing."""
	configure_logging()
	create_tables(engine)
	yield

app = FastAPI(title="ZIII Helpdesk Disposal Certificates", lifespan=lifespan)
app.include_router(router)
if __name__ == "__main__":
	import uvicorn
	uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
