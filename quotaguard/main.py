import uvicorn

from quotaguard.core.app_factory import create_app

app = create_app()


def run() -> None:
    uvicorn.run("quotaguard.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
