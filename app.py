from flask import Flask

import config
from routes import main


def create_app(store):
    app = Flask(__name__)

    # Load configuration from config.py
    app.config.from_object(config)

    # Attach the open store for routes to use
    app.store = store

    app.register_blueprint(main)

    return app
