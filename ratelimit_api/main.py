import uvicorn

from ratelimit_api.core.app_factory import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run("ratelimit_api.main:app", host="0.0.0.0", port=3000)
