"""Launch the topology pipeline FastAPI server."""

import uvicorn


def main():
    uvicorn.run("topology_pipeline.server:app", host="0.0.0.0", port=8000, reload=True)


if __name__ == "__main__":
    main()
