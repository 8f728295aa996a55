# backend/wsgi.py
# FLASK_APP=wsgi.py for the `flask` CLI; also the WSGI entry point.
from storefront import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5000, debug=False)
