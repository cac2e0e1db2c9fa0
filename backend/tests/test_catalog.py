import json

import pytest

from app.services.catalog_service import CatalogError, CatalogService, catalog_service


def _write_catalog(directory, course_id, **overrides):
    payload = {
        "course_id": course_id,
        "title": "Test",
        "fipi_task_count": 2,
        "topics": [
            {"code": "1.1", "name": "Числа", "skills": [{"number": 1, "importance": 0}]},
            {"code": "1.2", "name": "Дроби", "skills": [{"number": 2, "importance": 2}]},
        ],
        "fipi_task_topics": {"1": ["1.1"], "2": ["1.1", "1.2"]},
    }
    payload.update(overrides)
    path = directory / f"course_{course_id}.json"
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.mark.parametrize("course_id", ["1", "2", "3"])
def test_bundled_catalogs_load(course_id):
    catalog = catalog_service.get(course_id)

    assert catalog.course_id == course_id
    assert catalog.topics
    assert catalog.fipi_task_topics
    assert max(catalog.fipi_task_topics) <= catalog.fipi_task_count


def test_bundled_catalogs_listed():
    assert {"1", "2", "3"} <= set(catalog_service.available_courses())


def test_load_and_cache(tmp_path):
    _write_catalog(tmp_path, "7")
    service = CatalogService(catalog_dir=tmp_path)

    catalog = service.get("7")

    assert catalog.ordered_topic_codes == ["1.1", "1.2"]
    assert catalog.fipi_task_topics == {1: ["1.1"], 2: ["1.1", "1.2"]}
    assert catalog.topic_key("1.2") == "1.2 Дроби"
    assert service.get("7") is catalog


def test_resolve_topic_by_code_or_full_name(tmp_path):
    _write_catalog(tmp_path, "7")
    catalog = CatalogService(catalog_dir=tmp_path).get("7")

    assert catalog.resolve_topic("1.1").code == "1.1"
    assert catalog.resolve_topic("1.2  Дроби").code == "1.2"
    assert catalog.resolve_topic("5.5") is None


def test_missing_catalog(tmp_path):
    with pytest.raises(CatalogError):
        CatalogService(catalog_dir=tmp_path).get("1")


def test_fipi_task_with_unknown_topic_rejected(tmp_path):
    _write_catalog(tmp_path, "7", fipi_task_topics={"1": ["9.9"]})
    with pytest.raises(CatalogError, match="unknown topics"):
        CatalogService(catalog_dir=tmp_path).get("7")


def test_duplicate_topic_codes_rejected(tmp_path):
    topics = [
        {"code": "1.1", "name": "A", "skills": []},
        {"code": "1.1", "name": "B", "skills": []},
    ]
    _write_catalog(tmp_path, "7", topics=topics, fipi_task_topics={})
    with pytest.raises(CatalogError, match="duplicate"):
        CatalogService(catalog_dir=tmp_path).get("7")


def test_course_id_must_match_file(tmp_path):
    path = _write_catalog(tmp_path, "7")
    path.rename(tmp_path / "course_8.json")
    with pytest.raises(CatalogError):
        CatalogService(catalog_dir=tmp_path).get("8")


def test_catalog_endpoint(client):
    response = client.get("/api/v1/catalog/1")
    assert response.status_code == 200
    payload = response.json()
    assert payload["course_id"] == "1"
    assert payload["topics"][0]["position"] == 0
    assert "1" in payload["fipi_task_topics"]


def test_catalog_endpoint_unknown_course(client):
    response = client.get("/api/v1/catalog/99")
    assert response.status_code == 404
