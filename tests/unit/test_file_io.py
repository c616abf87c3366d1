"""Unit tests for file I/O functions."""

import json

import pytest
from pydantic import ValidationError

from lesson_judge.models.lesson import LessonContentBody
from lesson_judge.utils.file_io import (
    LessonBundle,
    list_bundle_files,
    load_lesson_bundle,
    read_json,
    write_json,
)


class TestJSONFunctions:
    """Test JSON read/write functions."""

    def test_write_and_read_json(self, tmp_path):
        data = {"lesson_id": "1.1", "scores": [0.7, 0.82]}
        file_path = tmp_path / "test.json"

        write_json(data, file_path)

        assert read_json(file_path) == data

    def test_write_json_creates_directories(self, tmp_path):
        file_path = tmp_path / "reports" / "2024" / "report.json"

        write_json({"key": "value"}, file_path)

        assert file_path.exists()

    def test_write_json_preserves_unicode(self, tmp_path):
        file_path = tmp_path / "unicode.json"

        write_json({"title": "Apprentissage supervisé"}, file_path)

        assert "supervisé" in file_path.read_text(encoding="utf-8")

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_json(tmp_path / "missing.json")


class TestLessonBundles:
    """Loading lesson bundles."""

    def test_load_structured_bundle(self, tmp_path, lesson_spec, lesson_content):
        bundle = LessonBundle(
            specification=lesson_spec,
            content=lesson_content,
            logprobs=[{"token": "A", "logprob": -0.2}],
            iteration_count=1,
            previous_scores=[0.7],
        )
        file_path = tmp_path / "lesson.json"
        write_json(bundle.model_dump(mode="json"), file_path)

        loaded = load_lesson_bundle(file_path)

        assert loaded.specification == lesson_spec
        assert isinstance(loaded.content, LessonContentBody)
        assert loaded.content == lesson_content
        assert loaded.logprobs[0].token == "A"
        assert loaded.iteration_count == 1
        assert loaded.previous_scores == [0.7]

    def test_load_markdown_bundle(self, tmp_path, lesson_spec, stub_markdown):
        file_path = tmp_path / "lesson.json"
        write_json(
            {"specification": lesson_spec.model_dump(mode="json"), "content": stub_markdown},
            file_path,
        )

        loaded = load_lesson_bundle(file_path)

        assert loaded.content == stub_markdown
        assert loaded.logprobs is None
        assert loaded.iteration_count == 0

    def test_invalid_bundle(self, tmp_path):
        file_path = tmp_path / "bad.json"
        file_path.write_text(json.dumps({"content": "text"}), encoding="utf-8")

        with pytest.raises(ValidationError):
            load_lesson_bundle(file_path)

    def test_list_bundle_files_sorted(self, tmp_path):
        for name in ("b.json", "a.json", "notes.txt"):
            (tmp_path / name).write_text("{}", encoding="utf-8")
        (tmp_path / "nested.json").mkdir()

        files = list_bundle_files(tmp_path)

        assert [f.name for f in files] == ["a.json", "b.json"]

    def test_list_bundle_files_missing_directory(self, tmp_path):
        assert list_bundle_files(tmp_path / "missing") == []
