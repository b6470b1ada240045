import os
import sys
import traceback

# Ensure project root is on sys.path so `import app` resolves consistently
ROOT = os.path.dirname(__file__)
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
os.chdir(ROOT)  # ensure relative paths (like SQLite) resolve to project root

try:
    from app import create_app
except Exception:
    print("[run_server] Failed to import app:create_app")
    traceback.print_exc()
    raise

app = create_app()

if __name__ == "__main__":
    # The Vite dev server proxies /api and /scraper here
    host = os.getenv("APP_HOST", "127.0.0.1")
    port = int(os.getenv("PORT", os.getenv("APP_PORT", "3000")))
    print(f"[run_server] Starting Flask on {host}:{port}")
    app.run(host=host, port=port, debug=False, use_reloader=False)
