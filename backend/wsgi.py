# backend/wsgi.py
# Entry point for "flask --app wsgi run" and WSGI servers.
from possync import create_app
from possync.services.sync_runtime import start_scheduler

app = create_app()

# The scheduler needs the schema; CLI commands such as "flask db upgrade"
# import this module too, so it only starts when explicitly enabled.
if app.config.get("SYNC_SCHEDULER_ENABLED") and not app.config.get("TESTING"):
    with app.app_context():
        start_scheduler(app)
