"""Healthwatch — status API entry point.

Serves the operator status API on 127.0.0.1 only.  The monitor daemon
itself is started with ``python watchdog.py start``.

Run:
    python app.py
"""

import config
from app import create_app

application = create_app()

if __name__ == "__main__":
    application.run(
        host=config.HOST,
        port=config.PORT,
        debug=False,
    )
