"""Launch the route video sync FastAPI server."""

import logging

import uvicorn

from route_video_sync.config import HOST, LOG_LEVEL, PORT


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("route_video_sync.server:app", host=HOST, port=PORT, reload=True)


if __name__ == "__main__":
    main()
