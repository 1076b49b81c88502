"""Processing dispatch: Celery queue vs inline on the running loop."""
from app.core.config import settings
from app.workers import video_processing


class TestEnqueue:
    def test_celery_mode_queues_task(self, monkeypatch):
        sent = []
        monkeypatch.setattr(settings, "PROCESSING_MODE", "celery")
        monkeypatch.setattr(video_processing.process_video_task, "delay", lambda *args: sent.append(args))

        video_processing.enqueue_video_processing("task-1", "/uploads/a.mp4", "local")

        assert sent == [("task-1", "/uploads/a.mp4", "local")]

    async def test_inline_mode_runs_on_loop(self, monkeypatch):
        calls = []

        async def fake_process(task_id, input_path, data_source=None):
            calls.append((task_id, input_path, data_source))
            return True

        monkeypatch.setattr(settings, "PROCESSING_MODE", "inline")
        monkeypatch.setattr(video_processing, "process_video", fake_process)

        video_processing.enqueue_video_processing("task-2", "/uploads/b.mp4", "supabase")
        assert len(video_processing._inline_jobs) == 1

        job = next(iter(video_processing._inline_jobs))
        assert await job is True
        assert calls == [("task-2", "/uploads/b.mp4", "supabase")]
        assert not video_processing._inline_jobs

    def test_worker_closes_adapters(self, monkeypatch):
        closed = []

        async def fake_process(task_id, input_path, data_source=None):
            return False

        async def fake_close():
            closed.append(True)

        monkeypatch.setattr(video_processing, "process_video", fake_process)
        monkeypatch.setattr(video_processing, "close_adapters", fake_close)

        assert video_processing.process_video_task.run("task-3", "/uploads/c.mp4", "local") is False
        assert closed == [True]
