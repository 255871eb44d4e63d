# File: backend/run.py
"""Application entry point.

Database and seeding commands come from the factory: ``flask init-db
[--drop]``, ``flask init-sessions``, ``flask create-admin`` and
``flask add-location``.
"""
import os
from dotenv import load_dotenv

# Load environment variables before the config classes read them
load_dotenv()

from checkin_app import create_app

app = create_app(os.getenv('FLASK_ENV', 'development'))

if __name__ == '__main__':
    # Development server
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '127.0.0.1')
    debug = os.environ.get('FLASK_ENV') == 'development'

    app.run(host=host, port=port, debug=debug)
