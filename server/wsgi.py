"""
WSGI entry point.

HOW TO DEPLOY:
1. Upload the project and install it (`pip install .`) into the web app's virtualenv
2. Point the host's WSGI configuration at `server.wsgi:application`
3. Set DATABASE_URL (and RESEND_API_KEY, MAIL_FROM, MAIL_TO for the contact form)
4. Set [change_feed].implementation = "redis" when running more than one worker,
   so a detection stored by one worker refreshes the views of the others
5. Reload the web app

Tables are created automatically by SQLAlchemy on startup.
"""

import os

# FLASK_DEBUG must not be "true" in production
os.environ.setdefault('FLASK_DEBUG', 'false')

from server.app import create_app  # noqa: E402

application = create_app()
