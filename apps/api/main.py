"""API process launcher.

Run with: uvicorn apps.api.main:app (from the repo root), or
`python -m apps.api.main` for a local server on PORT (default 3000).

The app is created here rather than in precious.app so that importing
precious.app in tests has no side effects beyond logging setup. When
SCHEDULER_ENABLED is true this process also fires the daily push passes;
run exactly one such process per deployment.
"""

import os

import uvicorn

from precious.app import add_request_id_middleware, create_app

app = create_app()
# Added last so it wraps everything else
add_request_id_middleware(app)

__all__ = ["app"]


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        log_config=None,
    )
