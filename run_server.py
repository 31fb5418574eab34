import os

import uvicorn

from promo_engine.config.settings import settings

if __name__ == "__main__":
    # Manifests are written per job under the output root
    if settings.output_root:
        os.makedirs(settings.output_root, exist_ok=True)

    print(f"🚀 Starting Promo Engine API on {settings.api_host}:{settings.api_port}...")
    uvicorn.run(
        "api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
