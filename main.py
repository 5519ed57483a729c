"""WSGI entrypoint for the recipes API.

The Flask development server is intentionally not started from this module so
that deployments rely on a WSGI server such as Gunicorn
(``gunicorn main:app``). Local development can still use
``flask --app main run`` which imports the ``app`` object defined below.
"""

import logging

from recipes_api import Settings, create_app

settings = Settings.from_env()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(settings)


__all__ = ["app"]
