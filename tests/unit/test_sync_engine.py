"""Unit tests for the incremental sync pass (site_sync/engine.py)."""

import gzip
import hashlib
import json

import pytest

from site_sync.engine import SyncEngine, deploy
from site_sync.exceptions import ConfigurationError, ParseError
from site_sync.manifest import MANIFEST_KEY


def sha(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def stored_manifest(store) -> dict:
    data, meta = store.get(MANIFEST_KEY)
    assert meta.content_type == "application/json"
    assert meta.acl == "private"
    return json.loads(data)


def seed_manifest(store, mapping):
    store.seed(MANIFEST_KEY, json.dumps({k: {"hash": v} for k, v in mapping.items()}).encode())


def test_first_run_uploads_everything(store, make_config, write_file, out_dir):
    write_file("index.html", "<h1>hi</h1>")
    write_file("app.js", "console.log(1)")

    result = SyncEngine(make_config(), store).run(out_dir)

    assert sorted(result.uploaded) == ["app.js", "index.html"]
    assert result.deleted == [] and result.tagged == []
    assert stored_manifest(store) == {
        "app.js": {"hash": sha(b"console.log(1)")},
        "index.html": {"hash": sha(b"<h1>hi</h1>")},
    }
    # Manifest is the last write of the pass
    assert store.mutations()[-1] == ("store", MANIFEST_KEY)


def test_stale_entry_is_deleted(store, make_config, write_file, out_dir):
    seed_manifest(store, {"old.js": "X"})
    store.seed("old.js", b"old")
    write_file("new.js", "new")

    result = SyncEngine(make_config(), store).run(out_dir)

    assert result.uploaded == ["new.js"]
    assert result.deleted == ["old.js"]
    assert ("delete", "old.js") in store.calls
    assert "site/old.js" not in store.objects
    assert stored_manifest(store) == {"new.js": {"hash": sha(b"new")}}


def test_stale_entry_is_tagged_when_delete_tag_configured(store, make_config, write_file, out_dir):
    seed_manifest(store, {"old.js": "X"})
    store.seed("old.js", b"old")
    write_file("new.js", "new")

    result = SyncEngine(make_config(delete_use_tag="stale"), store).run(out_dir)

    assert result.tagged == ["old.js"]
    assert result.deleted == []
    assert ("delete", "old.js") not in store.calls
    assert store.tags["site/old.js"] == {"stale": "stale"}
    assert stored_manifest(store) == {"new.js": {"hash": sha(b"new")}}


def test_second_pass_without_changes_is_a_noop(store, make_config, write_file, out_dir):
    write_file("index.html", "<p>x</p>")
    write_file("assets/app.js", "let a = 1")
    engine = SyncEngine(make_config(), store)

    engine.run(out_dir)
    first = stored_manifest(store)
    store.calls.clear()

    result = engine.run(out_dir)

    assert result.uploaded == []
    assert sorted(result.skipped) == ["assets/app.js", "index.html"]
    # Only the manifest is rewritten
    assert store.mutations() == [("store", MANIFEST_KEY)]
    assert stored_manifest(store) == first


def test_only_changed_files_are_reuploaded(store, make_config, write_file, out_dir):
    write_file("a.css", "a{}")
    write_file("b.css", "b{}")
    engine = SyncEngine(make_config(), store)
    engine.run(out_dir)
    store.calls.clear()

    write_file("b.css", "b{color:red}")
    result = engine.run(out_dir)

    assert result.uploaded == ["b.css"]
    assert result.skipped == ["a.css"]
    assert stored_manifest(store)["b.css"] == {"hash": sha(b"b{color:red}")}


def test_removed_file_is_deleted_exactly_once(store, make_config, write_file, out_dir):
    write_file("keep.js", "k")
    gone = write_file("gone.js", "g")
    engine = SyncEngine(make_config(), store)
    engine.run(out_dir)

    gone.unlink()
    engine.run(out_dir)
    engine.run(out_dir)

    assert store.calls.count(("delete", "gone.js")) == 1
    assert "gone.js" not in stored_manifest(store)


def test_empty_output_dir_removes_everything(store, make_config, out_dir):
    seed_manifest(store, {"a.js": "1", "b.js": "2"})

    result = SyncEngine(make_config(), store).run(out_dir)

    assert sorted(result.deleted) == ["a.js", "b.js"]
    assert stored_manifest(store) == {}


def test_clean_html_suffix_keeps_html_content_type(store, make_config, write_file, out_dir):
    write_file("about.html", "<p>about</p>")
    write_file("docs/index.html", "<p>docs</p>")

    SyncEngine(make_config(clean_html_suffix=True), store).run(out_dir)

    assert set(stored_manifest(store)) == {"about", "docs/index"}
    data, meta = store.get("about")
    assert data == b"<p>about</p>"
    assert meta.content_type == "text/html"
    assert meta.cache_control is None
    assert meta.acl == "public-read"


def test_non_html_upload_metadata(store, make_config, write_file, out_dir):
    write_file("style.css", "body{}")
    write_file("blob.unknownext", b"\x00\x01")

    SyncEngine(make_config(), store).run(out_dir)

    _, css = store.get("style.css")
    assert css.content_type == "text/css"
    assert css.cache_control == "public, max-age=31536000, immutable"
    assert css.content_encoding is None
    _, blob = store.get("blob.unknownext")
    assert blob.content_type == "application/octet-stream"


def test_gzip_compresses_non_html_only(store, make_config, write_file, out_dir):
    write_file("app.js", "x" * 1000)
    write_file("index.html", "<p>page</p>")

    SyncEngine(make_config(gzip=True), store).run(out_dir)

    data, meta = store.get("app.js")
    assert meta.content_encoding == "gzip"
    assert gzip.decompress(data) == b"x" * 1000
    html, html_meta = store.get("index.html")
    assert html == b"<p>page</p>"
    assert html_meta.content_encoding is None
    # Manifest hashes the raw bytes, not the compressed payload
    assert stored_manifest(store)["app.js"] == {"hash": sha(b"x" * 1000)}


def test_gzip_unchanged_file_is_not_compressed(store, make_config, write_file, out_dir, monkeypatch):
    write_file("app.js", "same")
    seed_manifest(store, {"app.js": sha(b"same")})

    from site_sync import engine as engine_mod

    def _fail(*_args, **_kwargs):
        raise AssertionError("compression should not run for unchanged files")

    monkeypatch.setattr(engine_mod, "gzip_compress", _fail)

    result = SyncEngine(make_config(gzip={"level": 9}), store).run(out_dir)

    assert result.uploaded == []
    assert store.mutations() == [("store", MANIFEST_KEY)]


def test_suffix_collision_last_file_wins(store, make_config, write_file, out_dir):
    write_file("about", "plain")
    write_file("about.html", "<p>html</p>")

    plan = SyncEngine(make_config(clean_html_suffix=True), store).plan(out_dir)

    # Sorted enumeration: "about" then "about.html"
    assert [item.path.name for item in plan.uploads] == ["about", "about.html"]
    assert plan.manifest["about"].hash == sha(b"<p>html</p>")


def test_hidden_files_are_not_synced(store, make_config, write_file, out_dir):
    write_file(".DS_Store", "junk")
    write_file(".well-known/thing.txt", "x")
    write_file("index.html", "<p/>")

    SyncEngine(make_config(), store).run(out_dir)

    assert set(stored_manifest(store)) == {"index.html"}


def test_plan_does_not_mutate_store(store, make_config, write_file, out_dir):
    seed_manifest(store, {"old.js": "X"})
    write_file("new.js", "new")

    plan = SyncEngine(make_config(), store).plan(out_dir)

    assert [item.name for item in plan.uploads] == ["new.js"]
    assert plan.stale == ["old.js"]
    assert store.mutations() == []


def test_dry_run_writes_nothing(store, make_config, write_file, out_dir):
    seed_manifest(store, {"old.js": "X"})
    write_file("new.js", "new")

    result = SyncEngine(make_config(), store).run(out_dir, dry_run=True)

    assert result.dry_run is True
    assert result.uploaded == ["new.js"]
    assert result.deleted == ["old.js"]
    assert store.mutations() == []


def test_failure_mid_pass_leaves_manifest_untouched(store, make_config, write_file, out_dir):
    seed_manifest(store, {"a.js": "X"})
    write_file("a.js", "a")
    write_file("b.js", "b")
    store.fail_on = ("store", "b.js")

    with pytest.raises(RuntimeError):
        SyncEngine(make_config(), store).run(out_dir)

    # Old manifest still in place; the next pass re-diffs and reconciles
    data, _ = store.get(MANIFEST_KEY)
    assert json.loads(data) == {"a.js": {"hash": "X"}}

    store.fail_on = None
    result = SyncEngine(make_config(), store).run(out_dir)
    assert sorted(result.uploaded) == ["a.js", "b.js"]


def test_malformed_manifest_is_fatal(store, make_config, write_file, out_dir):
    store.seed(MANIFEST_KEY, b"{not json")
    write_file("a.js", "a")

    with pytest.raises(ParseError):
        SyncEngine(make_config(), store).run(out_dir)

    assert store.mutations() == []


def test_missing_output_dir_fails_before_remote_calls(store, make_config, tmp_path):
    with pytest.raises(ConfigurationError):
        deploy(tmp_path / "missing", make_config(), store=store)

    assert store.calls == []
