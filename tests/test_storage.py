from pathlib import Path

from video_subtitles import storage


class TestStorage:
    def test_subtitle_path_replaces_extension(self):
        assert storage.subtitle_path("subtitles", "a.mp4") == Path("subtitles/a.srt")
        assert storage.subtitle_path("subtitles", "clips/b.final.mov") == Path("subtitles/b.final.srt")
        assert storage.subtitle_path("subtitles", "noext") == Path("subtitles/noext.srt")

    def test_ensure_directory_is_idempotent(self, tmp_path):
        target = tmp_path / "a" / "b"

        storage.ensure_directory(str(target))
        storage.ensure_directory(str(target))

        assert target.is_dir()

    def test_find_and_delete(self, tmp_path):
        (tmp_path / "a.srt").write_text("1")

        assert storage.find_subtitle(str(tmp_path), "a.srt") == tmp_path / "a.srt"
        assert storage.find_subtitle(str(tmp_path), "b.srt") is None
        assert storage.delete_subtitle(str(tmp_path), "a.srt") is True
        assert storage.delete_subtitle(str(tmp_path), "a.srt") is False
        assert storage.list_subtitles(str(tmp_path)) == []
