from __future__ import annotations

from masked_edit_core.utils.records import JsonSectionRepository
from masked_edit_core.utils.saver import replace_section_image, save_result_image

from conftest import solid


def test_records_survive_reload(tmp_path) -> None:
    path = tmp_path / "records.json"
    repo = JsonSectionRepository(path)
    media = repo.create_media(file_path="file:///a.png", width=10, height=5)
    section = repo.add_section(page_id=3, order=0, image_id=media.id)

    reloaded = JsonSectionRepository(path)
    assert reloaded.get_media(media.id).file_path == "file:///a.png"
    assert reloaded.get_section(section.id).image_id == media.id


def test_page_sections_are_ordered(repository) -> None:
    repository.add_section(page_id=1, order=2)
    repository.add_section(page_id=1, order=0)
    repository.add_section(page_id=2, order=1)
    repository.add_section(page_id=1, order=1)
    assert [s.order for s in repository.list_page_sections(1)] == [0, 1, 2]


def test_ids_increment(repository) -> None:
    a = repository.create_media(file_path="a")
    b = repository.create_media(file_path="b")
    assert b.id == a.id + 1
    assert repository.get_media(999) is None


def test_list_media_filters(repository) -> None:
    repository.create_media(file_path="https://x/bg-unify-1.png")
    repository.create_media(file_path="https://x/other.png", source_type="background-unified")
    repository.create_media(file_path="https://x/plain.png")
    found = repository.list_media(lambda m: "bg-unify-" in m.file_path or m.source_type == "background-unified")
    assert sorted(m.file_path for m in found) == ["https://x/bg-unify-1.png", "https://x/other.png"]


def test_save_and_replace_section_image(storage, repository) -> None:
    old = repository.create_media(file_path="old.png")
    section = repository.add_section(page_id=1, order=0, image_id=old.id)

    media = save_result_image(
        storage=storage,
        repository=repository,
        bucket="images",
        filename="new.png",
        image=solid((12, 8)),
        source_type="restyle-light",
        source_url="old.png",
    )
    history = replace_section_image(
        repository=repository,
        section=section,
        media=media,
        action_type="restyle",
        prompt="Style: pops",
    )

    assert (media.width, media.height) == (12, 8)
    assert repository.get_section(section.id).image_id == media.id
    assert history.previous_image_id == old.id
    assert history.new_image_id == media.id
    assert repository.history(section.id) == [history]


def test_replace_without_previous_can_skip_history(storage, repository) -> None:
    section = repository.add_section(page_id=1, order=0)
    media = repository.create_media(file_path="x.png")
    history = replace_section_image(
        repository=repository,
        section=section,
        media=media,
        action_type="design-unify",
        require_previous=True,
    )
    assert history is None
    assert repository.get_section(section.id).image_id == media.id
    assert repository.history() == []
