import pytest
from dcstack.MANAGERS.stack_store import StackNotFoundError, StackStore, validate_stack_name


@pytest.mark.parametrize("name", ["media", "my-stack", "app_2", "v1.2"])
def test_valid_names(name):
    assert validate_stack_name(name) == name


@pytest.mark.parametrize("name", ["", "../etc", "a/b", ".hidden", "-x", "web.effective", "a b"])
def test_invalid_names(name):
    with pytest.raises(ValueError):
        validate_stack_name(name)


class TestStackStore:
    def test_save_and_load(self, tmp_path):
        store = StackStore(str(tmp_path / "stacks"))
        store.save("web", "original: 1\n", "effective: 1\n")

        assert store.exists("web")
        assert store.load("web") == "original: 1\n"
        assert store.load("web", effective=True) == "effective: 1\n"
        assert store.load_declared("web") == "effective: 1\n"
        assert (tmp_path / "stacks" / "web.effective.yml").exists()

    def test_load_declared_falls_back_to_original(self, tmp_path):
        (tmp_path / "old.yml").write_text("services: {}\n")
        assert StackStore(str(tmp_path)).load_declared("old") == "services: {}\n"

    def test_missing_stack(self, tmp_path):
        with pytest.raises(StackNotFoundError):
            StackStore(str(tmp_path)).load("nope")

    def test_list_and_delete(self, tmp_path):
        store = StackStore(str(tmp_path))
        store.save("b", "", "")
        store.save("a", "", "")
        (tmp_path / "prod.env").write_text("")
        (tmp_path / "notes.txt").write_text("")

        assert store.list_names() == ["a", "b"]
        assert store.delete("a") is True
        assert store.delete("a") is False
        assert store.list_names() == ["b"]

    def test_missing_directory_lists_nothing(self, tmp_path):
        assert StackStore(str(tmp_path / "missing")).list_names() == []
