from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, status
from starlette.middleware.cors import CORSMiddleware

from marksheet.config import settings
from marksheet.dependencies.database import get_sessionmanager, initialize_db
from marksheet.routers import analytics, exams, marks, organizations, students, subjects


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context for application startup and shutdown."""
    async with initialize_db(get_sessionmanager()):
        yield


app = FastAPI(title="Marksheet", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(organizations.router)
app.include_router(students.router)
app.include_router(subjects.router)
app.include_router(exams.router)
app.include_router(marks.router)
app.include_router(analytics.router)


@app.get("/", status_code=status.HTTP_200_OK)
def test() -> dict[str, Any]:
    return {"success": True}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
