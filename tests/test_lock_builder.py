from __future__ import annotations

import logging
from pathlib import Path

import pytest

from conftest import UUID_A, UUID_B, UUID_C, UUID_D, make_spec
from extensions.errors import (
    AmbiguousExtensionError,
    ChildResolutionError,
    ExtensionFetchError,
    ExtensionReferenceError,
    ExtensionVersionError,
)
from extensions.lock_builder import LockBuilder, summarize_changes, update_repository_lock
from extensions.manifest import RemoteReference, RepositoryLock
from extensions.versioning import is_uuid

HELLO = "github.com/jx/hello"
CHEESE = "github.com/jx/cheese"


def leaf(name, uuid=None, **extra):
    data = {"name": name, "namespace": "jx", "when": ["install", "upgrade"]}
    if uuid:
        data["uuid"] = uuid
    data.update(extra)
    return data


def test_build_resolves_latest_and_inlines_script(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A)]}, {"hello.sh": "echo old\n"})
    host.publish(HELLO, "v1.2.0", {"extensions": [leaf("hello", UUID_A)]}, {"hello.sh": "echo hello\n"})

    result = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock())

    assert result.ok
    (spec,) = result.lock.extensions
    assert spec.version == "1.2.0"
    assert spec.script == "echo hello"
    assert result.lock.version == "1"


def test_default_script_file_is_snake_case_of_name(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("sayHello", UUID_A)]}, {"say_hello.sh": "echo hi\n"})

    lock = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock()).lock

    assert lock.extensions[0].script == "echo hi"
    assert (HELLO, "v1.0.0", "say_hello.sh") in host.fetched


def test_inline_script_is_not_fetched(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A, script="echo inline\n")]})

    lock = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock()).lock

    assert lock.extensions[0].script == "echo inline"
    assert all(path != "hello.sh" for _, _, path in host.fetched)


def test_version_precedence(host):
    host.publish(
        HELLO,
        "v9.9.9",
        {
            "version": "2.0.0",
            "extensions": [
                leaf("explicit", UUID_A, version="3.0.0", script="x"),
                leaf("document", UUID_B, script="x"),
            ],
        },
    )
    host.publish(CHEESE, "v4.1.0", {"extensions": [leaf("tagged", UUID_C, script="x")]})

    lock = LockBuilder(host).build(
        [RemoteReference(HELLO), RemoteReference(CHEESE)], RepositoryLock()
    ).lock

    versions = {s.name: s.version for s in lock.extensions}
    assert versions == {"explicit": "3.0.0", "document": "2.0.0", "tagged": "4.1.0"}


def test_invalid_new_version_aborts(host):
    host.publish(HELLO, "release-7", {"extensions": [leaf("hello", UUID_A, script="x")]})

    with pytest.raises(ExtensionVersionError, match="jx.hello"):
        LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock())


def test_missing_remote_is_a_fetch_error(host):
    with pytest.raises(ExtensionFetchError):
        LockBuilder(host).build([RemoteReference("github.com/jx/nope")], RepositoryLock())


def test_idempotent_apart_from_version_stamp(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A)]}, {"hello.sh": "echo hello\n"})
    remotes = [RemoteReference(HELLO, "v1.0.0")]
    builder = LockBuilder(host)

    first = builder.build(remotes, RepositoryLock()).lock
    second = builder.build(remotes, first).lock

    assert second.version == "2"
    assert second.extensions == first.extensions
    assert second.to_yaml_text().split("\n", 1)[1] == first.to_yaml_text().split("\n", 1)[1]


def test_uuid_carried_forward_by_name(host):
    previous = RepositoryLock(version="5", extensions=[make_spec("hello", UUID_A, "1.0.0")])
    host.publish(HELLO, "v1.1.0", {"extensions": [leaf("hello", script="x")]})

    lock = LockBuilder(host).build([RemoteReference(HELLO)], previous).lock

    assert [(s.uuid, s.version) for s in lock.extensions] == [(UUID_A, "1.1.0")]
    assert lock.version == "6"


def test_rename_keeps_explicit_uuid(host):
    previous = RepositoryLock(extensions=[make_spec("hello", UUID_A, "1.0.0")])
    host.publish(HELLO, "v1.1.0", {"extensions": [leaf("greeter", UUID_A, script="x")]})

    lock = LockBuilder(host).build([RemoteReference(HELLO)], previous).lock

    (spec,) = lock.extensions
    assert spec.uuid == UUID_A
    assert spec.fully_qualified_name == "jx.greeter"


def test_missing_uuid_generates_one_with_warning(host, caplog):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", script="x")]})

    with caplog.at_level(logging.WARNING):
        lock = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock()).lock

    assert is_uuid(lock.extensions[0].uuid)
    assert "No UUID found for jx.hello" in caplog.text


def test_pinned_older_tag_keeps_previous_entry(host):
    previous = RepositoryLock(
        version="1", extensions=[make_spec("hello", UUID_A, "2.0.0", script="echo two")]
    )
    host.publish(HELLO, "v1.5.0", {"extensions": [leaf("hello", UUID_A, script="echo old")]})

    lock = LockBuilder(host).build([RemoteReference(HELLO, "v1.5.0")], previous).lock

    assert [(s.version, s.script) for s in lock.extensions] == [("2.0.0", "echo two")]


def test_unparsable_previous_version_always_upgrades(host):
    previous = RepositoryLock(extensions=[make_spec("hello", UUID_A, "garbage")])
    host.publish(HELLO, "v0.1.0", {"extensions": [leaf("hello", UUID_A, script="x")]})

    lock = LockBuilder(host).build([RemoteReference(HELLO, "v0.1.0")], previous).lock

    assert lock.extensions[0].version == "0.1.0"


def test_walk_lock_emits_children_before_parent(host):
    child_1 = make_spec("one", UUID_B)
    grandchild = make_spec("deep", UUID_D)
    child_2 = make_spec("two", UUID_C, children=[UUID_D])
    parent = make_spec("bundle", UUID_A, children=[UUID_B, UUID_C])
    previous = RepositoryLock(extensions=[parent, child_1, child_2, grandchild])

    flattened = LockBuilder(host).walk_lock(parent, previous.by_uuid())

    assert [s.name for s in flattened] == ["one", "deep", "two", "bundle"]


def test_walk_lock_missing_child_is_reference_error(host):
    parent = make_spec("bundle", UUID_A, children=[UUID_B])

    with pytest.raises(ExtensionReferenceError, match=UUID_B):
        LockBuilder(host).walk_lock(parent, {UUID_A: parent})


def test_walk_lock_rejects_cycles(host):
    a = make_spec("a", UUID_A, children=[UUID_B])
    b = make_spec("b", UUID_B, children=[UUID_A])

    with pytest.raises(ExtensionReferenceError, match="own descendant"):
        LockBuilder(host).walk_lock(a, {UUID_A: a, UUID_B: b})


def test_carried_forward_composite_keeps_its_children(host):
    previous = RepositoryLock(
        extensions=[
            make_spec("bundle", UUID_A, "1.0.0", children=[UUID_B]),
            make_spec("cheese", UUID_B, "1.0.0"),
        ]
    )
    host.publish(
        HELLO, "v1.0.0", {"extensions": [leaf("bundle", UUID_A, children=[{"uuid": UUID_B}])]}
    )

    lock = LockBuilder(host).build([RemoteReference(HELLO, "v1.0.0")], previous).lock

    assert [s.uuid for s in lock.extensions] == [UUID_A, UUID_B]
    assert lock.by_uuid()[UUID_A].children == [UUID_B]


def test_children_resolved_by_name_with_warning(host, caplog):
    host.publish(
        HELLO,
        "v1.0.0",
        {
            "extensions": [
                leaf("bundle", UUID_B, children=["cheese"]),
                leaf("cheese", UUID_A, script="x"),
            ]
        },
    )

    with caplog.at_level(logging.WARNING):
        result = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock())

    assert result.ok
    assert result.lock.by_uuid()[UUID_B].children == [UUID_A]
    assert "explicitly specify the UUID" in caplog.text


def test_child_remote_is_walked(host):
    host.publish(
        HELLO,
        "v1.0.0",
        {"extensions": [leaf("bundle", UUID_B, children=[{"name": "jx.cheese", "remote": CHEESE}])]},
    )
    host.publish(CHEESE, "v0.3.0", {"extensions": [leaf("cheese", UUID_A, script="echo cheese")]})

    lock = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock()).lock

    assert [s.uuid for s in lock.extensions] == [UUID_A, UUID_B]
    assert lock.by_uuid()[UUID_A].version == "0.3.0"
    assert lock.by_uuid()[UUID_B].children == [UUID_A]


def test_child_remote_cycle_terminates(host):
    host.publish(
        HELLO,
        "v1.0.0",
        {"extensions": [leaf("a", UUID_A, children=[{"uuid": UUID_B, "remote": CHEESE}])]},
    )
    host.publish(
        CHEESE,
        "v1.0.0",
        {"extensions": [leaf("b", UUID_B, children=[{"uuid": UUID_A, "remote": HELLO}])]},
    )

    result = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock())

    assert result.ok
    assert sorted(s.uuid for s in result.lock.extensions) == [UUID_A, UUID_B]


def test_same_uuid_same_version_is_deduplicated(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})
    host.publish(CHEESE, "v1.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})

    lock = LockBuilder(host).build(
        [RemoteReference(HELLO), RemoteReference(CHEESE)], RepositoryLock()
    ).lock

    assert len(lock.extensions) == 1


def test_same_uuid_different_versions_is_ambiguous(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})
    host.publish(CHEESE, "v2.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})

    with pytest.raises(AmbiguousExtensionError) as excinfo:
        LockBuilder(host).build(
            [RemoteReference(HELLO), RemoteReference(CHEESE)], RepositoryLock()
        )

    message = str(excinfo.value)
    assert UUID_A in message
    assert "1.0.0" in message and "2.0.0" in message


def test_unresolved_children_are_aggregated(host, tmp_path: Path):
    host.publish(
        HELLO,
        "v1.0.0",
        {
            "extensions": [
                leaf("bundle", UUID_B, children=["missing-a", "jx.missing-b", {"uuid": UUID_D}]),
                leaf("cheese", UUID_A, script="x"),
            ]
        },
    )

    result = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock())

    assert not result.ok
    assert len(result.unresolved) == 3
    with pytest.raises(ChildResolutionError) as excinfo:
        result.raise_for_errors(directory=tmp_path)

    error = excinfo.value
    assert len(error.references) == 3
    assert error.partial_path is not None and error.partial_path.parent == tmp_path
    partial = error.partial_path.read_text()
    assert "missing-a" in partial
    assert UUID_D in partial
    assert str(error.partial_path) in str(error)


def test_explicit_version_stamp(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})

    lock = LockBuilder(host).build(
        [RemoteReference(HELLO)], RepositoryLock(version="release-3"), version="42"
    ).lock

    assert lock.version == "42"


def test_cheese_scenario_lock(host):
    previous = RepositoryLock(
        version="1", extensions=[make_spec("cheese", UUID_A, "1.0.0", namespace="")]
    )
    host.publish(
        CHEESE,
        "v1.1.0",
        {"extensions": [{"name": "cheese", "version": "1.1.0", "when": ["upgrade"], "script": "echo x"}]},
    )

    lock = LockBuilder(host).build([RemoteReference(CHEESE, "v1.1.0")], previous).lock

    assert [(s.uuid, s.version, s.name) for s in lock.extensions] == [(UUID_A, "1.1.0", "cheese")]


def test_update_repository_lock_writes_output_and_summarizes(host, tmp_path: Path):
    input_file = tmp_path / "extensions-repository.yaml"
    output_file = tmp_path / "extensions-repository.lock.yaml"
    input_file.write_text(f"remotes:\n  - remote: {HELLO}\n")
    RepositoryLock(
        version="7",
        extensions=[make_spec("hello", UUID_A, "1.0.0"), make_spec("gone", UUID_C, "1.0.0")],
    ).to_yaml(output_file)
    host.publish(HELLO, "v1.1.0", {"extensions": [leaf("hello", UUID_A, script="echo hi")]})

    lock, changes = update_repository_lock(LockBuilder(host), input_file, output_file)

    assert lock.version == "8"
    assert RepositoryLock.from_yaml(output_file) == lock
    assert changes == ["upgraded jx.hello 1.0.0 -> 1.1.0", "dropped jx.gone 1.0.0"]


def test_update_repository_lock_leaves_output_untouched_on_ambiguity(host, tmp_path: Path):
    input_file = tmp_path / "extensions-repository.yaml"
    output_file = tmp_path / "extensions-repository.lock.yaml"
    input_file.write_text(f"remotes:\n  - remote: {HELLO}\n  - remote: {CHEESE}\n")
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})
    host.publish(CHEESE, "v2.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})

    with pytest.raises(AmbiguousExtensionError):
        update_repository_lock(LockBuilder(host), input_file, output_file)

    assert not output_file.exists()


def test_summarize_changes_reports_renames_and_additions():
    old = RepositoryLock(extensions=[make_spec("hello", UUID_A)])
    new = RepositoryLock(extensions=[make_spec("greeter", UUID_A), make_spec("cheese", UUID_B)])

    assert summarize_changes(old, new) == ["renamed jx.hello -> jx.greeter", "added jx.cheese 1.0.0"]


def test_non_decimal_previous_stamp_restarts_at_one(host):
    host.publish(HELLO, "v1.0.0", {"extensions": [leaf("hello", UUID_A, script="x")]})

    lock = LockBuilder(host).build([RemoteReference(HELLO)], RepositoryLock(version="²")).lock

    assert lock.version == "1"


def test_missing_tag_resolves_newest_release_without_forcing_refresh(host):
    previous = RepositoryLock(extensions=[make_spec("hello", UUID_A, "2.0.0", script="echo two")])
    host.publish(HELLO, "v1.5.0", {"extensions": [leaf("hello", UUID_A, script="echo old")]})

    kept = LockBuilder(host).build([RemoteReference(HELLO)], previous).lock
    forced = LockBuilder(host).build([RemoteReference(HELLO, "latest")], previous).lock

    assert [(s.version, s.script) for s in kept.extensions] == [("2.0.0", "echo two")]
    assert [(s.version, s.script) for s in forced.extensions] == [("1.5.0", "echo old")]
