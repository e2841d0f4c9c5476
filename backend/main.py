import os

from dotenv import load_dotenv

# Load environment variables before the settings module is imported
load_dotenv()  # This reads .env into os.environ

from calsync.main import app  # noqa: E402

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "calsync.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("UVICORN_RELOAD", "0") == "1",
        timeout_keep_alive=int(os.getenv("UVICORN_KEEPALIVE", "65")),
    )
