"""Run the Design Review Copilot API."""

import os
from pathlib import Path

import uvicorn

if __name__ == "__main__":
    # Set working directory to project root
    os.chdir(Path(__file__).parent)

    uvicorn.run(
        "design_review.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["design_review", "config"],
        reload_excludes=["review_runs/*", "*.pyc", "__pycache__/*"],
        log_level="info"
    )
