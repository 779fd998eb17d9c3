import os

from wyniki_live import create_app, db

app = create_app()

__all__ = ["app", "db"]


if __name__ == "__main__":
    app.run(
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "5000")),
    )
