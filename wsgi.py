"""
WSGI entry point for the School Portal.

For gunicorn: wsgi:app
"""

from app import app

__all__ = ["app"]


if __name__ == "__main__":
    app.run()
