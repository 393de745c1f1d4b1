"""Main FastAPI application."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from silvaplan import __version__
from silvaplan.api.endpoints import router
from silvaplan.utils.logging import setup_logging

setup_logging()

app = FastAPI(
    title="SilvaPlan Assistant",
    description=(
        "A conversational assistant for planning tree planting and maintenance, "
        "with calendar tools, map-aware locations and weather risk analysis."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    tags_metadata=[
        {
            "name": "Conversation",
            "description": "Chat with the planting assistant and manage stored conversations.",
        },
        {
            "name": "Map",
            "description": "Map context updates and planning at the picked location.",
        },
        {
            "name": "Risks",
            "description": "Proactive weather risk warnings for upcoming events.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # the map UI is served from a separate origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("silvaplan.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
