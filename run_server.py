"""
Civilla Server Runner
=====================
Run this directly: python run_server.py
Host, port and log level come from the same settings the app uses (.env / env vars).
"""
import sys

import uvicorn

from civilla.core.config import get_settings

# Fix console encoding for Windows consoles
if sys.platform == 'win32':
    try:
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')
        sys.stderr.reconfigure(encoding='utf-8', errors='replace')
    except (AttributeError, OSError):
        pass  # Redirected output


def main():
    settings = get_settings()

    print()
    print("=" * 60)
    print(f"  {settings.app_name.upper()} SERVER v{settings.app_version}")
    print("=" * 60)
    print()
    print(f"  API:      http://localhost:{settings.port}/api")
    if settings.enable_docs:
        print(f"  API Docs: http://localhost:{settings.port}/api/docs")
    print(f"  Health:   http://localhost:{settings.port}/health")
    print()
    print("  Press Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(
        "civilla.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
