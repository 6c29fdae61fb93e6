# flask_app.py
import os

from tnt_history import create_app

app = create_app(os.environ.get("TNT_CONFIG", "config.Config"))

if __name__ == "__main__":
    app.run(debug=app.config.get("DEBUG", False))
