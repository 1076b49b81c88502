"""
Run the backend on Windows with ProactorEventLoop.

With PROCESSING_MODE=inline the API process spawns ffprobe/ffmpeg through
asyncio subprocesses, which Windows only supports on ProactorEventLoop.
`uvicorn --reload` forces SelectorEventLoop, so create_subprocess_exec raises
NotImplementedError and every task fails. This script keeps the Proactor loop.
Run: python run_win.py
"""
import asyncio
import os
import sys

if __name__ == "__main__":
    if sys.platform != "win32":
        print("run_win.py is for Windows only. Use: uvicorn app.main:app --host 0.0.0.0 --port 3001 --reload")
        sys.exit(1)

    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    # Stop uvicorn from switching back to SelectorEventLoop
    import uvicorn.loops.asyncio as uv_asyncio

    def _keep_proactor(use_subprocess: bool = False) -> None:
        pass

    uv_asyncio.asyncio_setup = _keep_proactor

    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=os.environ.get("UVICORN_HOST", "0.0.0.0"),
        port=int(os.environ.get("UVICORN_PORT", "3001")),
        reload=os.environ.get("UVICORN_RELOAD", "0") == "1",
    )
