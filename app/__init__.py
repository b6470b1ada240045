# The Flask application itself is assembled in `backend/api_catalog.py`; this
# keeps the `app:create_app` entry point that `run_server.py` and WSGI servers
# use.


def create_app(overrides=None):
    from backend.api_catalog import build_app

    return build_app(overrides)
